from app.db.models.document import Document, DocumentTag

__all__ = [
    "Document",
    "DocumentTag"
]
