import logging

from fastapi import HTTPException, status

from app.core.exceptions import (
    AuthenticationFailed, ConfigurationError, ConflictError, DocumentValidationError,
    DomainError, MalformedEnvelopeError, NotFoundError, SyncAbortedError
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: DomainError) -> HTTPException:
    """Перевод доменной ошибки в HTTP-ответ"""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, DocumentValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        logger.error(f"Encrypted content requested without encryption config: {exc}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Encryption is not configured"
        )
    if isinstance(exc, (AuthenticationFailed, MalformedEnvelopeError)):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cannot read content"
        )
    if isinstance(exc, SyncAbortedError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Synchronization failed"
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
