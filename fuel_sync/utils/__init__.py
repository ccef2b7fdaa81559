"""Utility modules for fuel_sync."""

# Generic CRUD helpers
from .crud_helpers import (
    count_records,
    create_record,
    get_record,
    get_record_by_id,
    list_records,
    record_exists,
    update_record,
)

# Background scheduling
from .periodic import PeriodicTask

# Logging utilities
from .logger import (
    ContextAwareLogger,
    configure_logging,
    get_logger,
    redact_url,
    reset_logging,
)

__all__ = [
    "count_records",
    "create_record",
    "get_record",
    "get_record_by_id",
    "list_records",
    "record_exists",
    "update_record",
    "ContextAwareLogger",
    "configure_logging",
    "get_logger",
    "redact_url",
    "reset_logging",
    "PeriodicTask",
]
