"""
Shared test fixtures.

Provides an in-memory SQLite database, reference data factories and a
helper for building JWT-shaped bearer tokens with a chosen expiry.
"""

import base64
import json
import time

import pytest
from sqlalchemy.orm import Session

from fuel_sync.config import reset_config
from fuel_sync.constants import AuthMode, Destination
from fuel_sync.db import DatabaseConfig, DatabaseManager, import_all_models
from fuel_sync.db.db_config import Base, close_db, get_development_config, initialize_db
from fuel_sync.db.db_reference_models import Network, TradingPoint
from fuel_sync.exceptions import clear_correlation_id
from fuel_sync.schemas.destination_schemas import DestinationSettings
from fuel_sync.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def clean_globals():
    """Each test starts with default configuration and no correlation id."""
    reset_config()
    reset_logging()
    clear_correlation_id()
    yield
    reset_config()
    reset_logging()
    clear_correlation_id()


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return get_development_config()


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    yield initialize_db(db_config)
    close_db()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Fresh schema and session per test.

    Tables are dropped afterwards so no rows leak between tests.
    """
    session = db_manager.get_session()
    Base.metadata.create_all(db_manager.engine)

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(db_manager.engine)


def make_jwt(expires_in: float, **claims) -> str:
    """Unsigned JWT whose exp claim lies `expires_in` seconds from now."""

    def encode(part: dict) -> str:
        raw = json.dumps(part).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    payload = {"exp": int(time.time() + expires_in), **claims}
    return f"{encode({'alg': 'HS256', 'typ': 'JWT'})}.{encode(payload)}.signature"


@pytest.fixture
def jwt_factory():
    return make_jwt


@pytest.fixture
def trading_settings():
    """Bearer-mode trading API settings with renewal credentials."""
    return DestinationSettings(
        destination=Destination.TRADING_API,
        base_url="https://trading.example.com/api/",
        auth_mode=AuthMode.BEARER,
        username="sync-user",
        password="sync-pass",
    )


@pytest.fixture
def network(db_session) -> Network:
    record = Network(name="North Network", external_id="15", code="north")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def trading_point_factory(db_session, network):
    """Create trading points in the default network."""

    def create(name="Station 1", external_id="4", is_active=True, network_id=None) -> TradingPoint:
        record = TradingPoint(
            name=name,
            external_id=external_id,
            is_active=is_active,
            network_id=network_id or network.id,
        )
        db_session.add(record)
        db_session.commit()
        return record

    return create
