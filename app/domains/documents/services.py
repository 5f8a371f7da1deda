import base64
import binascii
import logging
import math
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from app.core.encryption import EnvelopeCipher, KeyMaterial
from app.core.exceptions import (
    AuthenticationFailed, ConflictError, DocumentValidationError,
    MalformedEnvelopeError, NotFoundError
)
from app.core.keys import KeyManager
from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.entities import Document
from app.domains.documents.schemas import DocumentCreate, DocumentUpdate

logger = logging.getLogger(__name__)


class ContentEncryptionService:
    """Серверное шифрование содержимого ключом автора"""

    def __init__(self, key_manager: KeyManager, cipher: Optional[EnvelopeCipher] = None):
        self.key_manager = key_manager
        self.cipher = cipher or EnvelopeCipher()

    async def encrypt(self, author_id: str, plaintext: str) -> Tuple[str, str]:
        """Возвращает (base64-шифртекст, метаданные ключа)"""
        epoch = self.key_manager.current_epoch
        key = await self.key_manager.derive_user_key(author_id, epoch)
        payload = self.cipher.encrypt(plaintext.encode("utf-8"), key)

        material = KeyMaterial(epoch=epoch, nonce=payload.nonce, tag=payload.tag)
        return base64.b64encode(payload.ciphertext).decode("ascii"), material.to_json()

    async def decrypt(self, author_id: str, content: str, key_material: Optional[str]) -> Optional[str]:
        """Расшифровка; None если содержимое зашифровано клиентом"""
        material = KeyMaterial.parse(key_material)
        if material is None:
            return None

        try:
            ciphertext = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            raise MalformedEnvelopeError("Stored ciphertext is not valid base64")

        key = await self.key_manager.derive_user_key(author_id, material.epoch)
        try:
            plaintext = self.cipher.decrypt(ciphertext, key, material.nonce, material.tag)
        except AuthenticationFailed:
            logger.error(f"Decryption failed for content of author {author_id} at epoch {material.epoch}")
            raise
        return plaintext.decode("utf-8")

    def is_server_encrypted(self, document: Document) -> bool:
        return document.is_encrypted and KeyMaterial.parse(document.encrypted_key_material) is not None

    async def reveal(self, document: Document) -> Document:
        """Подмена шифртекста открытым текстом для ответа"""
        if document.is_encrypted:
            plaintext = await self.decrypt(document.author_id, document.content, document.encrypted_key_material)
            if plaintext is not None:
                document.content = plaintext
        return document


class DocumentService:
    """Сервис для работы с документами"""

    def __init__(self, session: AsyncSession, key_manager: KeyManager):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.encryption = ContentEncryptionService(key_manager)

    async def create_document(self, document_data: DocumentCreate, author_id: str) -> Document:
        """Создание нового документа"""
        content = document_data.content
        key_material = None

        if document_data.encrypt:
            content, key_material = await self.encryption.encrypt(author_id, content)

        document = Document.create_document(
            author_id=author_id,
            title=document_data.title,
            content=content,
            is_private=document_data.is_private,
            tags=document_data.tags,
            is_encrypted=document_data.encrypt,
            encrypted_key_material=key_material
        )

        created_document = await self.document_repository.create(document)
        await self.session.commit()

        logger.info(f"Document {created_document.uuid} created by {author_id}")
        return await self.encryption.reveal(created_document)

    async def get_document(self, document_uuid: uuid.UUID, requester_id: str) -> Document:
        """Получение документа: свой или публичный"""
        document = await self.document_repository.get_readable(document_uuid, requester_id)

        if not document:
            raise NotFoundError("Poem not found")

        return await self.encryption.reveal(document)

    async def update_document(
        self,
        document_uuid: uuid.UUID,
        update_data: DocumentUpdate,
        author_id: str
    ) -> Document:
        """Обновление документа с проверкой версии"""
        existing = await self.document_repository.get_owned(document_uuid, author_id, for_update=True)

        if not existing:
            raise NotFoundError("Poem not found")

        if update_data.version is not None and existing.is_stale(update_data.version):
            raise ConflictError(
                f"Poem has version {existing.version}, update is based on {update_data.version}",
                server_version=existing.version
            )

        patch = update_data.model_dump(exclude_unset=True, exclude={"encrypt", "version"})
        patch.update(await self._encryption_patch(existing, update_data))

        document = await self.document_repository.update(document_uuid, author_id, patch)
        await self.session.commit()

        logger.info(f"Document {document_uuid} updated to version {document.version}")
        return await self.encryption.reveal(document)

    async def delete_document(self, document_uuid: uuid.UUID, author_id: str) -> bool:
        """Удаление документа"""
        deleted = await self.document_repository.delete(document_uuid, author_id)
        await self.session.commit()
        return deleted

    async def list_documents(
        self,
        author_id: str,
        page: int = 1,
        limit: int = 10,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        order: str = "desc"
    ) -> Tuple[List[Document], dict]:
        """Документы автора и данные пагинации"""
        offset = (page - 1) * limit
        documents = await self.document_repository.list(
            author_id,
            tags=tags,
            search=search,
            sort_by=sort_by,
            order=order,
            limit=limit,
            offset=offset
        )
        total = await self.document_repository.count(author_id, tags=tags, search=search)

        revealed = [await self.encryption.reveal(document) for document in documents]
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0
        }
        return revealed, pagination

    async def _encryption_patch(self, existing: Document, update_data: DocumentUpdate) -> dict:
        server_encrypted = self.encryption.is_server_encrypted(existing)
        encrypt = update_data.encrypt if update_data.encrypt is not None else server_encrypted
        content = update_data.content

        if content is None:
            if encrypt == server_encrypted:
                return {}
            if server_encrypted:
                content = await self.encryption.decrypt(
                    existing.author_id, existing.content, existing.encrypted_key_material
                )
            elif existing.is_encrypted:
                raise DocumentValidationError("Client-encrypted content cannot be encrypted by the server")
            else:
                content = existing.content

        if encrypt:
            ciphertext, key_material = await self.encryption.encrypt(existing.author_id, content)
            return {"content": ciphertext, "is_encrypted": True, "encrypted_key_material": key_material}

        return {"content": content, "is_encrypted": False, "encrypted_key_material": None}
