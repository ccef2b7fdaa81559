"""
HTTP transport for the closed set of destinations.

Every call re-reads the destination's configuration, attaches the right
authentication, and executes the request with a bounded retry budget.
The timeout is handed to `requests`, so it limits the connect phase and
each socket read, not the total time spent receiving a response.

Connection failures, timeouts and 5xx responses are retried with linear
backoff; 4xx responses are returned at once. A 401 or
403 from a bearer destination triggers exactly one forced token renewal
and one more request.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, Field, field_validator

from ..config import TransportConfig, get_config
from ..constants import AuthMode, Destination
from ..exceptions import AuthConfigMissingError, BaseUrlMissingError
from ..services.destination_service import DestinationConfigService, coerce_destination
from ..services.token_service import TokenLifecycleManager, basic_auth_header
from ..utils.logger import get_logger, redact_url

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

AUTH_RETRY_STATUSES = (401, 403)


def calculate_backoff(attempt: int, base_delay: float = 1.5, max_delay: float = 30.0) -> float:
    """
    Linear backoff delay before the next attempt.

    Args:
        attempt: Number of the attempt that just failed (1-based)
        base_delay: Delay added per attempt in seconds
        max_delay: Upper bound in seconds

    Returns:
        Delay in seconds
    """
    return min(base_delay * max(attempt, 0), max_delay)


def build_url(base_url: str, path: str, query_params: List[Tuple[str, Any]]) -> str:
    """Join base URL and path and append query params in caller order, dropping None values."""
    if path and not path.startswith("/"):
        path = f"/{path}"
    url = f"{base_url}{path}"

    pairs = [(k, v) for k, v in query_params if v is not None]
    if pairs:
        query = urlencode(pairs)
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{query}"
    return url


class TransportRequest(BaseModel):
    method: str = "GET"
    path: str
    query_params: List[Tuple[str, Any]] = Field(default_factory=list)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    timeout: Optional[float] = Field(None, gt=0)
    retry_attempts: Optional[int] = Field(None, ge=1)
    use_auth: bool = True

    @field_validator("method")
    @classmethod
    def upper_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("query_params", mode="before")
    @classmethod
    def params_as_pairs(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            return list(v.items())
        return v


class ApiResponse(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    status: Optional[int] = None
    response_time_ms: float = 0
    headers: Dict[str, str] = Field(default_factory=dict)


class HttpTransport:
    """Executes requests against configured destinations."""

    def __init__(
        self,
        destination_service: DestinationConfigService,
        token_manager: TokenLifecycleManager,
        config: Optional[TransportConfig] = None,
        http_session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.destination_service = destination_service
        self.token_manager = token_manager
        self.config = config or get_config().transport
        self.http = http_session or requests.Session()
        self._owns_http = http_session is None
        self._sleep = sleep
        self.logger = get_logger()

    def execute(
        self, destination: Union[Destination, str], request: TransportRequest
    ) -> ApiResponse:
        """
        Send one logical request, retrying within the budget.

        Raises:
            UnknownDestinationError: destination outside the closed set
            BaseUrlMissingError: destination has no base URL
            AuthConfigMissingError: basic/bearer credentials needed but absent
            RenewalFailedError: bearer token could not be renewed
        """
        destination = coerce_destination(destination)
        settings = self.destination_service.get_settings(destination)
        if not settings.base_url:
            raise BaseUrlMissingError(destination.value)

        caller_sets_auth = any(k.lower() == "authorization" for k in request.headers)
        uses_bearer = (
            request.use_auth and settings.auth_mode == AuthMode.BEARER and not caller_sets_auth
        )

        auth_headers: Dict[str, str] = {}
        if uses_bearer:
            credential = self.token_manager.ensure_valid(destination)
            auth_headers["Authorization"] = f"Bearer {credential.token}"
        elif request.use_auth and settings.auth_mode == AuthMode.BASIC:
            if not settings.has_basic_credentials:
                raise AuthConfigMissingError(destination.value)
            auth_headers["Authorization"] = basic_auth_header(settings.username, settings.password)

        headers = {**DEFAULT_HEADERS, **auth_headers, **request.headers}
        url = build_url(settings.base_url, request.path, request.query_params)
        timeout = request.timeout or settings.timeout or self.config.default_timeout
        attempts = request.retry_attempts or settings.retry_attempts or self.config.retry_attempts

        response = self._send_with_retries(
            destination, request.method, url, headers, request.body, timeout, attempts
        )

        if uses_bearer and response.status in AUTH_RETRY_STATUSES:
            self.logger.warning(
                "Bearer token rejected, forcing renewal",
                extra={"destination": destination.value, "status": response.status},
            )
            credential = self.token_manager.ensure_valid(destination, force=True)
            headers["Authorization"] = f"Bearer {credential.token}"
            response = self._send_with_retries(
                destination, request.method, url, headers, request.body, timeout, 1
            )

        return response

    def get(self, destination, path, params=None, **kwargs) -> ApiResponse:
        return self.execute(
            destination, TransportRequest(method="GET", path=path, query_params=params, **kwargs)
        )

    def post(self, destination, path, body=None, params=None, **kwargs) -> ApiResponse:
        return self.execute(
            destination,
            TransportRequest(method="POST", path=path, body=body, query_params=params, **kwargs),
        )

    def put(self, destination, path, body=None, params=None, **kwargs) -> ApiResponse:
        return self.execute(
            destination,
            TransportRequest(method="PUT", path=path, body=body, query_params=params, **kwargs),
        )

    def delete(self, destination, path, params=None, **kwargs) -> ApiResponse:
        return self.execute(
            destination, TransportRequest(method="DELETE", path=path, query_params=params, **kwargs)
        )

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def _send_with_retries(
        self,
        destination: Destination,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Any,
        timeout: float,
        attempts: int,
    ) -> ApiResponse:
        safe_url = redact_url(url)
        send_kwargs: Dict[str, Any] = {"headers": headers, "timeout": timeout}
        if isinstance(body, (str, bytes)):
            send_kwargs["data"] = body
        elif body is not None:
            send_kwargs["json"] = body

        attempt = 0
        while True:
            attempt += 1
            started = time.perf_counter()
            try:
                raw = self.http.request(method, url, **send_kwargs)
            except requests.RequestException as e:
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                self.logger.warning(
                    f"{method} {safe_url} failed: {type(e).__name__}",
                    extra={
                        "destination": destination.value,
                        "attempt": attempt,
                        "attempts": attempts,
                        "response_time_ms": elapsed_ms,
                        "error": str(e),
                    },
                )
                if attempt < attempts:
                    self._sleep(self._backoff(attempt))
                    continue
                return ApiResponse(
                    success=False, status=None, error=str(e), response_time_ms=elapsed_ms
                )

            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response = self._to_api_response(raw, elapsed_ms)
            self._log_response(destination, method, safe_url, response, attempt, attempts)

            if raw.status_code >= 500 and attempt < attempts:
                self._sleep(self._backoff(attempt))
                continue
            return response

    def _backoff(self, attempt: int) -> float:
        return calculate_backoff(attempt, self.config.backoff_base, self.config.backoff_max)

    @staticmethod
    def _to_api_response(raw: requests.Response, elapsed_ms: float) -> ApiResponse:
        content_type = raw.headers.get("Content-Type", "")
        if "json" in content_type.lower():
            try:
                data = raw.json()
            except ValueError:
                data = raw.text
        else:
            data = raw.text

        success = 200 <= raw.status_code < 300
        error = None
        if not success:
            if isinstance(data, dict) and data.get("message"):
                error = str(data["message"])
            else:
                error = f"HTTP {raw.status_code}: {raw.reason}"

        return ApiResponse(
            success=success,
            data=data,
            error=error,
            status=raw.status_code,
            response_time_ms=elapsed_ms,
            headers=dict(raw.headers),
        )

    def _log_response(
        self,
        destination: Destination,
        method: str,
        safe_url: str,
        response: ApiResponse,
        attempt: int,
        attempts: int,
    ) -> None:
        log_data = {
            "destination": destination.value,
            "status": response.status,
            "response_time_ms": response.response_time_ms,
            "attempt": attempt,
            "attempts": attempts,
        }
        if response.success:
            self.logger.info(f"{method} {safe_url}", extra=log_data)
        else:
            log_data["response_body"] = str(response.data)[:500]
            self.logger.warning(f"{method} {safe_url} -> {response.error}", extra=log_data)
