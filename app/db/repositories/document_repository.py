from datetime import datetime
from typing import Optional, List, Dict, Any, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
import uuid

from app.db.models.document import Document as DocumentModel, DocumentTag as DocumentTagModel

if TYPE_CHECKING:
    from app.domains.documents.entities import Document


SORT_COLUMNS = {
    "createdAt": DocumentModel.created_at,
    "updatedAt": DocumentModel.updated_at,
    "title": DocumentModel.title,
    "version": DocumentModel.version,
}

UPDATABLE_FIELDS = ("title", "content", "is_encrypted", "encrypted_key_material", "is_private")


class DocumentRepository:
    """Репозиторий документов.

    Все запросы ограничены автором. Репозиторий не коммитит: транзакцией
    управляет вызывающий сервис, поэтому sync-батч применяется атомарно.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, document: "Document") -> "Document":
        """Создание нового документа"""
        db_document = DocumentModel(
            uuid=document.uuid,
            author_id=document.author_id,
            title=document.title,
            content=document.content,
            is_encrypted=document.is_encrypted,
            encrypted_key_material=document.encrypted_key_material,
            is_private=document.is_private,
            version=1,
            client_id=document.client_id,
            created_at=document.created_at,
            updated_at=document.updated_at,
            tags=[DocumentTagModel(tag=tag) for tag in document.tags]
        )

        self.session.add(db_document)
        await self.session.flush()
        return self._to_domain(db_document)

    async def get_readable(self, document_uuid: uuid.UUID, requester_id: str) -> Optional["Document"]:
        """Документ, доступный на чтение: свой или публичный"""
        result = await self.session.execute(
            select(DocumentModel).where(
                DocumentModel.uuid == document_uuid,
                or_(DocumentModel.author_id == requester_id, DocumentModel.is_private.is_(False))
            )
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def get_owned(
        self,
        document_uuid: uuid.UUID,
        author_id: str,
        for_update: bool = False
    ) -> Optional["Document"]:
        """Документ автора; for_update блокирует строку до конца транзакции"""
        db_document = await self._get_model(document_uuid, author_id, for_update)
        return self._to_domain(db_document) if db_document else None

    async def get_by_client_id(self, author_id: str, client_id: str) -> Optional["Document"]:
        """Поиск по клиентскому идентификатору корреляции"""
        result = await self.session.execute(
            select(DocumentModel).where(
                DocumentModel.author_id == author_id,
                DocumentModel.client_id == client_id
            )
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def update(
        self,
        document_uuid: uuid.UUID,
        author_id: str,
        patch: Dict[str, Any]
    ) -> Optional["Document"]:
        """Обновление документа: версия +1, updated_at = now"""
        db_document = await self._get_model(document_uuid, author_id, for_update=True)

        if not db_document:
            return None

        for field in UPDATABLE_FIELDS:
            if field in patch:
                setattr(db_document, field, patch[field])

        if patch.get("tags") is not None:
            self._replace_tags(db_document, patch["tags"])

        db_document.version = db_document.version + 1
        db_document.updated_at = datetime.utcnow()

        await self.session.flush()
        return self._to_domain(db_document)

    async def delete(self, document_uuid: uuid.UUID, author_id: str) -> bool:
        """Жесткое удаление документа"""
        db_document = await self._get_model(document_uuid, author_id, for_update=True)

        if not db_document:
            return False

        await self.session.delete(db_document)
        await self.session.flush()
        return True

    async def list_changed_since(self, author_id: str, since: datetime) -> List["Document"]:
        """Документы автора, измененные строго после since"""
        result = await self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.author_id == author_id, DocumentModel.updated_at > since)
            .order_by(DocumentModel.updated_at.asc(), DocumentModel.uuid.asc())
        )
        db_documents = result.scalars().all()
        return [self._to_domain(doc) for doc in db_documents]

    async def list(
        self,
        author_id: str,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        order: str = "desc",
        limit: int = 10,
        offset: int = 0
    ) -> List["Document"]:
        """Список документов автора с фильтрами и пагинацией"""
        column = SORT_COLUMNS.get(sort_by, DocumentModel.created_at)
        ordering = column.asc() if order == "asc" else column.desc()

        result = await self.session.execute(
            select(DocumentModel)
            .where(*self._filters(author_id, tags, search))
            .order_by(ordering, DocumentModel.uuid.asc())
            .offset(offset)
            .limit(limit)
        )
        db_documents = result.scalars().all()
        return [self._to_domain(doc) for doc in db_documents]

    async def count(
        self,
        author_id: str,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None
    ) -> int:
        """Подсчет документов под теми же фильтрами"""
        result = await self.session.execute(
            select(func.count(DocumentModel.uuid)).where(*self._filters(author_id, tags, search))
        )
        return result.scalar()

    async def latest_update(self, author_id: str) -> Optional[datetime]:
        """Время последнего изменения среди документов автора"""
        result = await self.session.execute(
            select(func.max(DocumentModel.updated_at)).where(DocumentModel.author_id == author_id)
        )
        return result.scalar()

    async def _get_model(
        self,
        document_uuid: uuid.UUID,
        author_id: str,
        for_update: bool
    ) -> Optional[DocumentModel]:
        query = select(DocumentModel).where(
            DocumentModel.uuid == document_uuid,
            DocumentModel.author_id == author_id
        )
        if for_update:
            query = query.with_for_update()

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def _filters(author_id: str, tags: Optional[List[str]], search: Optional[str]) -> List:
        conditions = [DocumentModel.author_id == author_id]

        for tag in tags or []:
            conditions.append(DocumentModel.tags.any(DocumentTagModel.tag == tag))

        if search:
            needle = search.lower()
            conditions.append(or_(
                func.lower(DocumentModel.title).contains(needle, autoescape=True),
                func.lower(DocumentModel.content).contains(needle, autoescape=True)
            ))

        return conditions

    @staticmethod
    def _replace_tags(db_document: DocumentModel, tags: List[str]) -> None:
        # Существующие строки сохраняем, чтобы не вставлять тот же первичный ключ повторно
        wanted = set(tags)
        for tag_row in list(db_document.tags):
            if tag_row.tag not in wanted:
                db_document.tags.remove(tag_row)
        present = {tag_row.tag for tag_row in db_document.tags}
        for tag in sorted(wanted - present):
            db_document.tags.append(DocumentTagModel(tag=tag))

    def _to_domain(self, db_document: DocumentModel) -> "Document":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.documents.entities import Document

        return Document(
            uuid=db_document.uuid,
            author_id=db_document.author_id,
            title=db_document.title,
            content=db_document.content,
            version=db_document.version,
            is_encrypted=db_document.is_encrypted,
            encrypted_key_material=db_document.encrypted_key_material,
            is_private=db_document.is_private,
            tags=[tag_row.tag for tag_row in db_document.tags],
            client_id=db_document.client_id,
            created_at=db_document.created_at,
            updated_at=db_document.updated_at
        )
