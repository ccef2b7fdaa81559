"""
Constants and enums for the fuel_sync package.

This module centralizes all magic strings and constants used throughout
the synchronization core to ensure consistency and maintainability.
"""

from enum import Enum


class Destination(str, Enum):
    """Logical HTTP targets the transport layer knows how to reach."""

    TRADING_API = "trading-api"
    DATA_STORE = "data-store"


class AuthMode(str, Enum):
    """Authentication modes a destination may be configured with."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


class SyncState(str, Enum):
    """States of a single synchronization run."""

    IDLE = "idle"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    DEDUPING = "deduping"
    PERSISTING = "persisting"
    DONE = "done"


class OperationType(str, Enum):
    """Internal operation types."""

    SALE = "sale"
    REFUND = "refund"
    CORRECTION = "correction"
    MAINTENANCE = "maintenance"
    SENSOR_CALIBRATION = "sensor_calibration"
    DIAGNOSTICS = "diagnostics"


class OperationStatus(str, Enum):
    """Internal operation statuses."""

    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Internal payment methods."""

    CASH = "cash"
    BANK_CARD = "bank_card"
    FUEL_CARD = "fuel_card"
    CORPORATE_CARD = "corporate_card"
    ONLINE_ORDER = "online_order"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    TRADING_NETWORK_ID = "TRADING_NETWORK_ID"
    TRADING_API_BASE_URL = "TRADING_API_BASE_URL"
    TRADING_API_AUTH_MODE = "TRADING_API_AUTH_MODE"
    TRADING_API_USERNAME = "TRADING_API_USERNAME"
    TRADING_API_PASSWORD = "TRADING_API_PASSWORD"
    TRADING_API_TOKEN = "TRADING_API_TOKEN"
    DATA_STORE_BASE_URL = "DATA_STORE_BASE_URL"


class TradingEndpoint(str, Enum):
    """Trading API endpoint paths."""

    LOGIN = "/v1/login"
    TRANSACTIONS = "/v1/transactions"
    TANKS = "/v1/tanks"
    PRICES = "/v1/pos/prices/{station}"
    SERVICES = "/v1/services"


# Upstream vocabularies. Keys are compared lower-cased.
TRANSACTION_TYPE_MAPPING = {
    "sale": OperationType.SALE,
    "fuel_sale": OperationType.SALE,
    "refund": OperationType.REFUND,
    "fuel_refund": OperationType.REFUND,
    "correction": OperationType.CORRECTION,
    "maintenance": OperationType.MAINTENANCE,
    "calibration": OperationType.SENSOR_CALIBRATION,
    "diagnostics": OperationType.DIAGNOSTICS,
}

STATUS_MAPPING = {
    "completed": OperationStatus.COMPLETED,
    "success": OperationStatus.COMPLETED,
    "refunded": OperationStatus.COMPLETED,
    "failed": OperationStatus.FAILED,
    "error": OperationStatus.FAILED,
    "pending": OperationStatus.PENDING,
    "in_progress": OperationStatus.IN_PROGRESS,
    "cancelled": OperationStatus.CANCELLED,
}

PAYMENT_METHOD_MAPPING = {
    "cash": PaymentMethod.CASH,
    "card": PaymentMethod.BANK_CARD,
    "bank_card": PaymentMethod.BANK_CARD,
    "fuel_card": PaymentMethod.FUEL_CARD,
    "corporate_card": PaymentMethod.CORPORATE_CARD,
    "online": PaymentMethod.ONLINE_ORDER,
    "online_order": PaymentMethod.ONLINE_ORDER,
}

# Substring rules for free-text pay_type names, checked in order.
PAY_TYPE_NAME_RULES = (
    ("наличн", PaymentMethod.CASH),
    ("cash", PaymentMethod.CASH),
    ("мобил", PaymentMethod.FUEL_CARD),
    ("топлив", PaymentMethod.FUEL_CARD),
    ("fuel", PaymentMethod.FUEL_CARD),
    ("сбербанк", PaymentMethod.BANK_CARD),
    ("карт", PaymentMethod.BANK_CARD),
    ("card", PaymentMethod.BANK_CARD),
)

DEFAULT_OPERATION_TYPE = OperationType.SALE
DEFAULT_STATUS = OperationStatus.COMPLETED
DEFAULT_PAYMENT_METHOD = PaymentMethod.CASH

SYNC_SOURCE = "trading_api_sync"
