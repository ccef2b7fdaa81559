"""Transaction synchronization from the trading API into the operations store."""

from .sync_engine import TransactionSyncEngine
from .transform import (
    extract_transactions,
    map_operation_type,
    map_payment_method,
    map_status,
    parse_external_transaction,
    parse_timestamp,
    to_operation_record,
    transform_transaction,
)

__all__ = [
    "TransactionSyncEngine",
    "extract_transactions",
    "map_operation_type",
    "map_payment_method",
    "map_status",
    "parse_external_transaction",
    "parse_timestamp",
    "to_operation_record",
    "transform_transaction",
]
