import uuid
from datetime import datetime
from typing import Optional, List


class Document:
    """Версионированный документ (стихотворение) пользователя"""

    def __init__(
        self,
        uuid: uuid.UUID,
        author_id: str,
        title: str,
        content: str = "",
        version: int = 1,
        is_encrypted: bool = False,
        encrypted_key_material: Optional[str] = None,
        is_private: bool = True,
        tags: Optional[List[str]] = None,
        client_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.author_id = author_id
        self.title = title
        self.content = content
        self.version = version
        self.is_encrypted = is_encrypted
        self.encrypted_key_material = encrypted_key_material
        self.is_private = is_private
        self.tags = sorted(set(tags or []))
        self.client_id = client_id
        self.created_at = created_at or datetime.utcnow()
        self.updated_at = updated_at or datetime.utcnow()

    def is_stale(self, client_version: int) -> bool:
        """Сервер видел версию новее той, на которой основано изменение клиента"""
        return self.version > client_version

    @classmethod
    def create_document(
        cls,
        author_id: str,
        title: str,
        content: str,
        is_private: bool = True,
        tags: Optional[List[str]] = None,
        is_encrypted: bool = False,
        encrypted_key_material: Optional[str] = None,
        client_id: Optional[str] = None
    ) -> "Document":
        """Создание нового документа с версией 1"""
        now = datetime.utcnow()
        return cls(
            uuid=uuid.uuid4(),
            author_id=author_id,
            title=title,
            content=content,
            version=1,
            is_encrypted=is_encrypted,
            encrypted_key_material=encrypted_key_material,
            is_private=is_private,
            tags=tags,
            client_id=client_id,
            created_at=now,
            updated_at=now
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Document):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Document(uuid={self.uuid}, title={self.title}, version={self.version})"
