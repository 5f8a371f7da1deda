from fastapi import APIRouter, Depends

from app.core.auth import get_key_manager
from app.core.keys import KeyManager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(key_manager: KeyManager = Depends(get_key_manager)):
    """Проверка состояния сервиса"""
    return {"status": "ok", "encryption": key_manager.is_configured}
