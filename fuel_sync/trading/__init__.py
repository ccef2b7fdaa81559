from .trading_api import TradingApiClient, format_api_datetime
from .transport import ApiResponse, HttpTransport, TransportRequest, build_url, calculate_backoff

__all__ = [
    "ApiResponse",
    "HttpTransport",
    "TradingApiClient",
    "TransportRequest",
    "build_url",
    "calculate_backoff",
    "format_api_datetime",
]
