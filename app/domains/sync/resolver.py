"""Разрешение конфликтов для одного изменения из sync-батча.

Порядок решений:
1. deleted=true  -> удаление по (id, автор); отсутствующий документ тоже "applied".
2. есть id       -> документ не найден: rejected; серверная версия больше
                    клиентской: rejected (конфликт); иначе обновление, версия +1.
3. нет id        -> создание с версией 1 и clientId для корреляции.

Сравнение версий - единственный сигнал конфликта, timestamp клиента
только информационный. Содержимое никогда не расшифровывается.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union
import uuid

from app.core.exceptions import ConflictError, NotFoundError
from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.entities import Document
from app.domains.sync.schemas import CreateChange, DeleteChange, UpdateChange

logger = logging.getLogger(__name__)

Change = Union[CreateChange, UpdateChange, DeleteChange]


class ChangeStatus(str, enum.Enum):
    APPLIED = "applied"
    REJECTED = "rejected"


@dataclass
class ChangeOutcome:
    change: Change
    status: ChangeStatus
    document: Optional[Document] = None
    reason: Optional[str] = None
    conflict_version: Optional[int] = None

    @property
    def applied(self) -> bool:
        return self.status is ChangeStatus.APPLIED

    @property
    def server_id(self) -> Optional[uuid.UUID]:
        if self.document is not None:
            return self.document.uuid
        return self.change.id

    @property
    def server_version(self) -> Optional[int]:
        if self.document is not None:
            return self.document.version
        return self.conflict_version


class ConflictResolver:
    """Решение по одному изменению клиента против текущего состояния сервера"""

    def __init__(self, repository: DocumentRepository):
        self.repository = repository

    async def resolve(self, change: Change, author_id: str) -> ChangeOutcome:
        try:
            if isinstance(change, DeleteChange):
                return await self._delete(change, author_id)
            if isinstance(change, UpdateChange):
                return await self._update(change, author_id)
            return await self._create(change, author_id)
        except NotFoundError:
            logger.info(f"Change {change.client_id} rejected: poem {change.id} not found")
            return ChangeOutcome(change, ChangeStatus.REJECTED, reason="not_found")
        except ConflictError as e:
            logger.info(f"Change {change.client_id} rejected: {e}")
            return ChangeOutcome(
                change, ChangeStatus.REJECTED, reason="conflict", conflict_version=e.server_version
            )

    async def _delete(self, change: DeleteChange, author_id: str) -> ChangeOutcome:
        if change.id is not None:
            await self.repository.delete(change.id, author_id)
        return ChangeOutcome(change, ChangeStatus.APPLIED)

    async def _update(self, change: UpdateChange, author_id: str) -> ChangeOutcome:
        existing = await self.repository.get_owned(change.id, author_id, for_update=True)

        if not existing:
            raise NotFoundError(f"Poem {change.id} not found")

        if existing.is_stale(change.version):
            raise ConflictError(
                f"server version {existing.version} is newer than client version {change.version}",
                server_version=existing.version
            )

        document = await self.repository.update(change.id, author_id, {
            "title": change.title,
            "content": change.content,
            "is_encrypted": change.is_encrypted,
            "encrypted_key_material": change.encrypted_key_material,
        })
        return ChangeOutcome(change, ChangeStatus.APPLIED, document=document)

    async def _create(self, change: CreateChange, author_id: str) -> ChangeOutcome:
        existing = await self.repository.get_by_client_id(author_id, change.client_id)

        if existing:
            # Повтор уже примененного батча
            logger.info(f"Change {change.client_id} already created as poem {existing.uuid}")
            return ChangeOutcome(change, ChangeStatus.APPLIED, document=existing)

        document = Document.create_document(
            author_id=author_id,
            title=change.title,
            content=change.content,
            is_encrypted=change.is_encrypted,
            encrypted_key_material=change.encrypted_key_material,
            client_id=change.client_id
        )
        created = await self.repository.create(document)
        return ChangeOutcome(change, ChangeStatus.APPLIED, document=created)
