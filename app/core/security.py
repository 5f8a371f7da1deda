from typing import Optional, Dict, Any
from jose import JWTError, jwt

from app.core.config import settings


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Проверка JWT токена и извлечение данных.

    Токены выпускает внешний сервис идентификации, здесь они только проверяются.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload
    except JWTError:
        return None
