from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.http.errors import to_http_exception
from app.core.auth import get_current_user_id
from app.core.db import get_db
from app.core.exceptions import SyncAbortedError
from app.domains.documents.schemas import DocumentResponse
from app.domains.sync.schemas import (
    ChangeResult, SyncChanges, SyncRequest, SyncResponse, SyncStatusResponse
)
from app.domains.sync.services import SyncService

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("", response_model=SyncResponse)
async def synchronize(
    sync_request: SyncRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Применение батча изменений клиента и выдача изменений сервера"""
    sync_service = SyncService(db)

    try:
        result = await sync_service.synchronize(sync_request, user_id)
    except SyncAbortedError as e:
        raise to_http_exception(e) from e

    return SyncResponse(
        changes=SyncChanges(
            applied=[ChangeResult.from_outcome(outcome) for outcome in result.applied],
            rejected=[ChangeResult.from_outcome(outcome) for outcome in result.rejected],
            server_changes=[DocumentResponse.from_entity(document) for document in result.server_changes]
        ),
        timestamp=result.timestamp
    )


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Время последнего изменения на сервере"""
    sync_service = SyncService(db)
    last_sync, server_time = await sync_service.get_status(user_id)
    return SyncStatusResponse(last_sync=last_sync, server_time=server_time)
