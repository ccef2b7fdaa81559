"""
Typed calls against the trading network API.
"""

from datetime import datetime
from typing import Optional

from ..constants import Destination, TradingEndpoint
from .transport import ApiResponse, HttpTransport

API_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def format_api_datetime(value: datetime) -> str:
    """Second precision, no offset, as the upstream filters expect."""
    return value.strftime(API_DATETIME_FORMAT)


class TradingApiClient:
    """
    Read-only access to the trading API through the shared transport.

    Endpoint paths can be overridden per deployment through the
    destination's `endpoints` mapping (keys: transactions, tanks, prices,
    services).
    """

    destination = Destination.TRADING_API

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    def get_transactions(
        self, system_id: str, station_id: str, start: datetime, end: datetime
    ) -> ApiResponse:
        return self.transport.get(
            self.destination,
            self._path("transactions", TradingEndpoint.TRANSACTIONS),
            params=[
                ("system", system_id),
                ("station", station_id),
                ("dt_beg", format_api_datetime(start)),
                ("dt_end", format_api_datetime(end)),
            ],
        )

    def get_tanks(self, system_id: str, station_id: Optional[str] = None) -> ApiResponse:
        return self.transport.get(
            self.destination,
            self._path("tanks", TradingEndpoint.TANKS),
            params=[("system", system_id), ("station", station_id)],
        )

    def get_prices(self, system_id: str, station_id: str) -> ApiResponse:
        path = self._path("prices", TradingEndpoint.PRICES).format(station=station_id)
        return self.transport.get(self.destination, path, params=[("system", system_id)])

    def get_services(self, system_id: str) -> ApiResponse:
        return self.transport.get(
            self.destination,
            self._path("services", TradingEndpoint.SERVICES),
            params=[("system", system_id)],
        )

    def test_connection(self, system_id: str) -> bool:
        """Cheapest authenticated call; True when it answers 2xx."""
        return self.get_services(system_id).success

    def _path(self, name: str, default: TradingEndpoint) -> str:
        endpoints = self.transport.destination_service.get_settings(self.destination).endpoints
        return endpoints.get(name) or default.value
