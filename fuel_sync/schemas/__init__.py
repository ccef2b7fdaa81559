from .destination_schemas import Credential, DestinationSettings, TokenInfo
from .sync_schemas import (
    StationMapping,
    StationSyncResult,
    SyncError,
    SyncOptions,
    SyncRunResult,
    SyncStatus,
    TradingPointRef,
)
from .transaction_schemas import ExternalTransaction, OperationRecord

__all__ = [
    "Credential",
    "DestinationSettings",
    "TokenInfo",
    "StationMapping",
    "StationSyncResult",
    "SyncError",
    "SyncOptions",
    "SyncRunResult",
    "SyncStatus",
    "TradingPointRef",
    "ExternalTransaction",
    "OperationRecord",
]
