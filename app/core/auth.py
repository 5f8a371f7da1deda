from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.keys import KeyManager
from app.core.security import verify_token

security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> str:
    """Идентификатор пользователя из bearer-токена (claim `sub`)"""
    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub") if payload else None

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(user_id)


def get_key_manager(request: Request) -> KeyManager:
    """Менеджер ключей, созданный при сборке приложения"""
    return request.app.state.key_manager
