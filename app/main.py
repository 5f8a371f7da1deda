import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.http import documents_router, health_router, sync_router
from app.core.config import Settings, settings
from app.core.db import init_db
from app.core.keys import KeyManager

logger = logging.getLogger(__name__)


def build_key_manager() -> KeyManager:
    """Менеджер ключей из настроек окружения"""
    return KeyManager(
        master_secret=settings.encryption_key,
        salt=settings.encryption_salt,
        iterations=settings.kdf_iterations,
        previous_secrets=settings.previous_encryption_keys(),
        rotation_interval=timedelta(days=settings.key_rotation_interval_days),
        # При ротации секрет перечитывается из окружения и .env
        secret_loader=lambda: Settings().encryption_key
    )


def error_response(message: str, status_code: int, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers
    )


def format_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return "; ".join(messages) or "Invalid request"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Создание таблиц и фоновая ротация ключей"""
    await init_db()
    rotation_task = asyncio.create_task(app.state.key_manager.run_rotation())
    logger.info("Key rotation task started")

    yield

    rotation_task.cancel()
    try:
        await rotation_task
    except asyncio.CancelledError:
        pass
    logger.info("Key rotation task stopped")


def create_app(key_manager: Optional[KeyManager] = None) -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = FastAPI(
        title=settings.app_name,
        description="Синхронизация стихотворений с разрешением конфликтов и шифрованием",
        version=settings.version,
        lifespan=lifespan
    )
    app.state.key_manager = key_manager or build_key_manager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail), exc.status_code, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(format_validation_error(exc), status.HTTP_400_BAD_REQUEST)

    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(sync_router)

    return app


app = create_app()
