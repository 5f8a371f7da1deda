from app.domains.documents.entities import Document
from app.domains.documents.schemas import (
    DocumentCreate, DocumentUpdate, DocumentResponse, DocumentEnvelope,
    DocumentListResponse, DeleteResponse, Pagination
)
from app.domains.documents.services import DocumentService, ContentEncryptionService

__all__ = [
    "Document",
    "DocumentCreate", "DocumentUpdate", "DocumentResponse", "DocumentEnvelope",
    "DocumentListResponse", "DeleteResponse", "Pagination",
    "DocumentService", "ContentEncryptionService"
]
