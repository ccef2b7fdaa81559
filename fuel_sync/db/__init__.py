"""
SQLAlchemy models and database configuration.
"""

from .db_base import JSON, TimestampMixin, UUIDMixin, as_utc, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
)
from .db_destination_models import DestinationConfig
from .db_operation_models import Operation
from .db_reference_models import Network, TradingPoint

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "as_utc",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    # Models
    "DestinationConfig",
    "Network",
    "Operation",
    "TradingPoint",
]
