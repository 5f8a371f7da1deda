"""Общие фикстуры: in-memory SQLite, менеджер ключей, HTTP-клиент."""
import os

# Настройки читаются при импорте app.core.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ENCRYPTION_KEY", "test-master-secret")
os.environ.setdefault("KDF_ITERATIONS", "1000")

from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import Base, get_db
from app.core.keys import KeyManager
from app.core.config import settings
from app.db import models  # noqa: F401
from app.db.repositories.document_repository import DocumentRepository
from app.main import create_app


def create_access_token(data: dict, expires_delta: timedelta = timedelta(minutes=15)) -> str:
    """Токен, как его выпустил бы внешний сервис идентификации"""
    to_encode = data.copy()
    to_encode.update({"exp": datetime.utcnow() + expires_delta})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str) -> dict:
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(db_session):
    return DocumentRepository(db_session)


@pytest.fixture
def key_manager():
    return KeyManager(master_secret="test-master-secret", salt="test-salt", iterations=1000)


@pytest.fixture
async def client(session_factory, key_manager):
    application = create_app(key_manager=key_manager)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def alice():
    return auth_headers("alice")


@pytest.fixture
def bob():
    return auth_headers("bob")


@pytest.fixture
def headers_for():
    return auth_headers
