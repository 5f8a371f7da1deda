import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SyncAbortedError
from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.entities import Document
from app.domains.sync.resolver import ChangeOutcome, ConflictResolver
from app.domains.sync.schemas import EPOCH, SyncRequest

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    timestamp: datetime
    applied: List[ChangeOutcome] = field(default_factory=list)
    rejected: List[ChangeOutcome] = field(default_factory=list)
    server_changes: List[Document] = field(default_factory=list)


class SyncService:
    """Протокол синхронизации: push изменений клиента, затем pull дельты сервера"""

    def __init__(self, session: AsyncSession, resolver: Optional[ConflictResolver] = None):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.resolver = resolver or ConflictResolver(self.document_repository)

    async def synchronize(self, sync_request: SyncRequest, user_id: str) -> SyncResult:
        """Весь батч в одной транзакции.

        Изменения применяются строго по порядку массива: следующие видят
        версии, выставленные предыдущими. Отклонения по конфликту фиксируются
        как результат, а ошибка хранилища откатывает батч целиком.
        """
        # Отметка берется до обработки, чтобы следующий pull не пропустил параллельные записи
        result = SyncResult(timestamp=datetime.utcnow())

        try:
            for change in sync_request.changes:
                outcome = await self.resolver.resolve(change, user_id)
                if outcome.applied:
                    result.applied.append(outcome)
                else:
                    result.rejected.append(outcome)

            result.server_changes = await self.document_repository.list_changed_since(
                user_id, sync_request.since
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(f"Sync for user {user_id} aborted, transaction rolled back")
            raise SyncAbortedError("Synchronization failed") from e

        logger.info(
            f"Sync for user {user_id}: {len(result.applied)} applied, "
            f"{len(result.rejected)} rejected, {len(result.server_changes)} server changes"
        )
        return result

    async def get_status(self, user_id: str) -> Tuple[datetime, datetime]:
        """Последнее изменение на сервере и текущее время сервера"""
        last_change = await self.document_repository.latest_update(user_id)
        return last_change or EPOCH, datetime.utcnow()
