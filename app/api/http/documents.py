from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_user_id, get_key_manager
from app.core.db import get_db
from app.core.exceptions import DocumentValidationError, DomainError, NotFoundError
from app.core.keys import KeyManager
from app.domains.documents.schemas import (
    DocumentCreate, DocumentUpdate, DocumentResponse, DocumentEnvelope,
    DocumentListResponse, DeleteResponse, Pagination, normalize_tags
)
from app.domains.documents.services import DocumentService

router = APIRouter(prefix="/api/poems", tags=["poems"])


def get_document_service(
    db: AsyncSession = Depends(get_db),
    key_manager: KeyManager = Depends(get_key_manager)
) -> DocumentService:
    return DocumentService(db, key_manager)


@router.post("", response_model=DocumentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    user_id: str = Depends(get_current_user_id),
    document_service: DocumentService = Depends(get_document_service)
):
    """Создание нового стихотворения"""
    try:
        document = await document_service.create_document(document_data, user_id)
    except DomainError as e:
        raise to_http_exception(e) from e

    return DocumentEnvelope(data=DocumentResponse.from_entity(document))


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tags: Optional[str] = Query(None, description="Теги через запятую, должны совпасть все"),
    search: Optional[str] = Query(None, max_length=200),
    sort_by: str = Query("createdAt", alias="sortBy", pattern="^(createdAt|updatedAt|title|version)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    user_id: str = Depends(get_current_user_id),
    document_service: DocumentService = Depends(get_document_service)
):
    """Список стихотворений пользователя"""
    try:
        tag_list = normalize_tags(tags.split(",")) if tags else None
    except ValueError as e:
        raise to_http_exception(DocumentValidationError(str(e))) from e

    try:
        documents, pagination = await document_service.list_documents(
            user_id,
            page=page,
            limit=limit,
            tags=tag_list,
            search=search,
            sort_by=sort_by,
            order=order
        )
    except DomainError as e:
        raise to_http_exception(e) from e

    return DocumentListResponse(
        data=[DocumentResponse.from_entity(document) for document in documents],
        pagination=Pagination(**pagination)
    )


@router.get("/{document_uuid}", response_model=DocumentEnvelope)
async def get_document(
    document_uuid: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    document_service: DocumentService = Depends(get_document_service)
):
    """Получение стихотворения: своего или публичного"""
    try:
        document = await document_service.get_document(document_uuid, user_id)
    except DomainError as e:
        raise to_http_exception(e) from e

    return DocumentEnvelope(data=DocumentResponse.from_entity(document))


@router.put("/{document_uuid}", response_model=DocumentEnvelope)
async def update_document(
    document_uuid: uuid.UUID,
    update_data: DocumentUpdate,
    user_id: str = Depends(get_current_user_id),
    document_service: DocumentService = Depends(get_document_service)
):
    """Частичное обновление; версия увеличивается на 1"""
    try:
        document = await document_service.update_document(document_uuid, update_data, user_id)
    except DomainError as e:
        raise to_http_exception(e) from e

    return DocumentEnvelope(data=DocumentResponse.from_entity(document))


@router.delete("/{document_uuid}", response_model=DeleteResponse)
async def delete_document(
    document_uuid: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    document_service: DocumentService = Depends(get_document_service)
):
    """Удаление стихотворения"""
    deleted = await document_service.delete_document(document_uuid, user_id)

    if not deleted:
        raise to_http_exception(NotFoundError("Poem not found"))

    return DeleteResponse()
