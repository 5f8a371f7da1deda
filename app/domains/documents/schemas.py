from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List
import uuid
from datetime import datetime, timezone

from app.core.config import settings


def as_utc(value: datetime) -> datetime:
    """В БД время хранится в UTC без зоны; наружу отдаем с зоной"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_tags(tags: List[str]) -> List[str]:
    """Теги: trim, нижний регистр, без пустых и повторов"""
    normalized = []
    for tag in tags:
        tag = tag.strip().lower()
        if not tag:
            continue
        if len(tag) > settings.max_tag_length:
            raise ValueError(f"Tags may be at most {settings.max_tag_length} characters long")
        if tag not in normalized:
            normalized.append(tag)
    return normalized


class CamelModel(BaseModel):
    """JSON API использует camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentCreate(CamelModel):
    """Схема для создания документа"""
    title: str = Field(..., min_length=1, max_length=settings.max_title_length)
    content: str = Field(..., min_length=1, max_length=settings.max_content_length)
    is_private: bool = True
    tags: List[str] = Field(default_factory=list)
    encrypt: bool = False

    model_config = ConfigDict(extra="forbid")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError('Content cannot be empty')
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return normalize_tags(v)


class DocumentUpdate(CamelModel):
    """Схема для частичного обновления документа"""
    title: Optional[str] = Field(None, min_length=1, max_length=settings.max_title_length)
    content: Optional[str] = Field(None, min_length=1, max_length=settings.max_content_length)
    is_private: Optional[bool] = None
    tags: Optional[List[str]] = None
    encrypt: Optional[bool] = None
    # Версия, на которой основано изменение; если сервер ушел вперед - 409
    version: Optional[int] = Field(None, ge=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip() if v else v

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Content cannot be empty')
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return normalize_tags(v) if v is not None else v


class DocumentResponse(CamelModel):
    """Схема для ответа с данными документа"""
    id: uuid.UUID
    author_id: str
    title: str
    content: str
    is_encrypted: bool
    encrypted_key_material: Optional[str] = None
    version: int
    tags: List[str]
    is_private: bool
    client_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timestamps(cls, v):
        return as_utc(v)

    @classmethod
    def from_entity(cls, document) -> "DocumentResponse":
        return cls(
            id=document.uuid,
            author_id=document.author_id,
            title=document.title,
            content=document.content,
            is_encrypted=document.is_encrypted,
            encrypted_key_material=document.encrypted_key_material,
            version=document.version,
            tags=document.tags,
            is_private=document.is_private,
            client_id=document.client_id,
            created_at=document.created_at,
            updated_at=document.updated_at
        )


class DocumentEnvelope(BaseModel):
    """Ответ с одним документом"""
    success: bool = True
    data: DocumentResponse


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class DocumentListResponse(BaseModel):
    """Схема для списка документов"""
    success: bool = True
    data: List[DocumentResponse]
    pagination: Pagination


class DeleteResponse(BaseModel):
    success: bool = True
    message: str = "Poem deleted"
