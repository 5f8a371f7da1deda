from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional, Union
import uuid

from pydantic import ConfigDict, Discriminator, Field, Tag, field_validator

from app.core.config import settings
from app.core.encryption import claims_server_scheme
from app.domains.documents.schemas import CamelModel, DocumentResponse, as_utc

MAX_BATCH_SIZE = 500
EPOCH = datetime(1970, 1, 1)


def to_naive_utc(value: datetime) -> datetime:
    """Приведение к UTC без зоны, как хранится в БД"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ChangeBase(CamelModel):
    """Общие поля изменения, присланного клиентом"""
    client_id: str = Field(..., min_length=1, max_length=128)
    timestamp: datetime

    model_config = ConfigDict(extra="forbid")


class PayloadChange(ChangeBase):
    title: str = Field(..., min_length=1, max_length=settings.max_title_length)
    content: str = Field(..., min_length=1, max_length=settings.max_content_length)
    is_encrypted: bool = False
    encrypted_key_material: Optional[str] = Field(None, max_length=4096)
    # Версия, на которой клиент основывает изменение
    version: int = Field(..., ge=0)
    deleted: Literal[False] = False

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()

    @field_validator('encrypted_key_material')
    @classmethod
    def validate_key_material(cls, v):
        # Клиентский конверт непрозрачен и не может выдавать себя за серверный
        if claims_server_scheme(v):
            raise ValueError('Key material must not use the server encryption scheme')
        return v


class CreateChange(PayloadChange):
    """Новый документ: серверного id еще нет"""
    id: None = None


class UpdateChange(PayloadChange):
    """Изменение документа, уже известного серверу"""
    id: uuid.UUID


class DeleteChange(ChangeBase):
    """Удаление; остальные поля клиент может прислать, они не используются"""
    id: Optional[uuid.UUID] = None
    deleted: Literal[True]
    title: Optional[str] = None
    content: Optional[str] = None
    is_encrypted: Optional[bool] = None
    encrypted_key_material: Optional[str] = None
    version: Optional[int] = Field(None, ge=0)


def change_kind(value: Any) -> str:
    if isinstance(value, dict):
        deleted, document_id = value.get("deleted"), value.get("id")
    else:
        deleted, document_id = getattr(value, "deleted", False), getattr(value, "id", None)

    if deleted is True:
        return "delete"
    return "update" if document_id is not None else "create"


ClientChange = Annotated[
    Union[
        Annotated[CreateChange, Tag("create")],
        Annotated[UpdateChange, Tag("update")],
        Annotated[DeleteChange, Tag("delete")],
    ],
    Discriminator(change_kind),
]


class SyncRequest(CamelModel):
    """Тело POST /api/sync"""
    changes: List[ClientChange] = Field(default_factory=list, max_length=MAX_BATCH_SIZE)
    last_sync: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator('last_sync')
    @classmethod
    def validate_last_sync(cls, v):
        return to_naive_utc(v) if v is not None else v

    @property
    def since(self) -> datetime:
        return self.last_sync or EPOCH


class ChangeResult(CamelModel):
    """Эхо изменения клиента плюс результат на сервере"""
    id: Optional[uuid.UUID] = None
    client_id: str
    title: Optional[str] = None
    content: Optional[str] = None
    is_encrypted: Optional[bool] = None
    encrypted_key_material: Optional[str] = None
    version: Optional[int] = None
    timestamp: datetime
    deleted: bool = False
    server_id: Optional[uuid.UUID] = None
    server_version: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome) -> "ChangeResult":
        return cls(
            **outcome.change.model_dump(),
            server_id=outcome.server_id,
            server_version=outcome.server_version,
            reason=outcome.reason
        )


class SyncChanges(CamelModel):
    applied: List[ChangeResult]
    rejected: List[ChangeResult]
    server_changes: List[DocumentResponse]


class SyncResponse(CamelModel):
    """Ответ POST /api/sync"""
    success: bool = True
    changes: SyncChanges
    timestamp: datetime

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        return as_utc(v)


class SyncStatusResponse(CamelModel):
    """Ответ GET /api/sync/status"""
    success: bool = True
    last_sync: datetime
    server_time: datetime

    @field_validator('last_sync', 'server_time')
    @classmethod
    def validate_timestamps(cls, v):
        return as_utc(v)
