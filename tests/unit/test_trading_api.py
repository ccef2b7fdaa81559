"""
Tests for the typed trading API client.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from fuel_sync.constants import Destination
from fuel_sync.schemas.destination_schemas import DestinationSettings
from fuel_sync.trading.trading_api import TradingApiClient, format_api_datetime
from fuel_sync.trading.transport import ApiResponse


@pytest.fixture
def transport():
    transport = Mock()
    transport.destination_service.get_settings.return_value = DestinationSettings(
        destination=Destination.TRADING_API, base_url="https://trading.example.com"
    )
    transport.get.return_value = ApiResponse(success=True, data=[], status=200)
    return transport


@pytest.fixture
def client(transport):
    return TradingApiClient(transport)


def test_format_api_datetime_drops_fraction_and_offset():
    value = datetime(2024, 3, 1, 8, 5, 9, 123456, tzinfo=timezone.utc)

    assert format_api_datetime(value) == "2024-03-01T08:05:09"


def test_get_transactions(client, transport):
    start = datetime(2024, 3, 1, tzinfo=timezone.utc)
    end = datetime(2024, 3, 8, 12, 30, tzinfo=timezone.utc)

    response = client.get_transactions("15", "4", start, end)

    assert response.success
    transport.get.assert_called_once_with(
        Destination.TRADING_API,
        "/v1/transactions",
        params=[
            ("system", "15"),
            ("station", "4"),
            ("dt_beg", "2024-03-01T00:00:00"),
            ("dt_end", "2024-03-08T12:30:00"),
        ],
    )


def test_endpoint_override(client, transport):
    transport.destination_service.get_settings.return_value = DestinationSettings(
        destination=Destination.TRADING_API,
        base_url="https://trading.example.com",
        endpoints={"transactions": "/v2/sales"},
    )

    client.get_transactions("15", "4", datetime(2024, 1, 1), datetime(2024, 1, 2))

    assert transport.get.call_args.args[1] == "/v2/sales"


def test_get_prices_substitutes_station(client, transport):
    client.get_prices("15", "4")

    transport.get.assert_called_once_with(
        Destination.TRADING_API, "/v1/pos/prices/4", params=[("system", "15")]
    )


def test_get_tanks_optional_station(client, transport):
    client.get_tanks("15")

    transport.get.assert_called_once_with(
        Destination.TRADING_API, "/v1/tanks", params=[("system", "15"), ("station", None)]
    )


def test_test_connection(client, transport):
    assert client.test_connection("15") is True

    transport.get.return_value = ApiResponse(success=False, status=503, error="down")
    assert client.test_connection("15") is False
    assert transport.get.call_args.args[1] == "/v1/services"
