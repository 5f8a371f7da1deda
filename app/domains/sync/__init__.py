from app.domains.sync.schemas import (
    ClientChange, CreateChange, UpdateChange, DeleteChange,
    SyncRequest, SyncResponse, SyncStatusResponse, ChangeResult
)
from app.domains.sync.resolver import ConflictResolver, ChangeOutcome, ChangeStatus
from app.domains.sync.services import SyncService, SyncResult

__all__ = [
    "ClientChange", "CreateChange", "UpdateChange", "DeleteChange",
    "SyncRequest", "SyncResponse", "SyncStatusResponse", "ChangeResult",
    "ConflictResolver", "ChangeOutcome", "ChangeStatus",
    "SyncService", "SyncResult"
]
