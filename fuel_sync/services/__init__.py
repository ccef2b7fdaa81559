"""Service layer for configuration, credentials, station lookup and persistence."""

from .base_service import SessionManagedService
from .destination_service import DestinationConfigService, coerce_destination
from .operation_store import OperationStore
from .station_resolver import StationResolver
from .token_service import TokenLifecycleManager, basic_auth_header

__all__ = [
    "SessionManagedService",
    "DestinationConfigService",
    "coerce_destination",
    "OperationStore",
    "StationResolver",
    "TokenLifecycleManager",
    "basic_auth_header",
]
