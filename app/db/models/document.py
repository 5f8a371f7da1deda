from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.db.base import BaseModel


class Document(BaseModel):
    __tablename__ = "poems"
    __table_args__ = (
        # Повторный sync-батч не должен создавать дубликаты
        UniqueConstraint("author_id", "client_id", name="uq_poems_author_client"),
        Index("ix_poems_author_created", "author_id", "created_at"),
    )

    author_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    is_encrypted = Column(Boolean, nullable=False, default=False)
    encrypted_key_material = Column(Text, nullable=True)
    is_private = Column(Boolean, nullable=False, default=True, index=True)
    version = Column(Integer, nullable=False, default=1)
    client_id = Column(String(128), nullable=True)

    # Relationships
    tags = relationship(
        "DocumentTag",
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin"
    )


class DocumentTag(Base):
    __tablename__ = "poem_tags"

    document_id = Column(Uuid, ForeignKey("poems.uuid", ondelete="CASCADE"), primary_key=True)
    tag = Column(String(64), primary_key=True, index=True)

    # Relationships
    document = relationship("Document", back_populates="tags")
