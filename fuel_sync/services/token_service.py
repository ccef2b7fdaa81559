"""
Bearer token lifecycle management.

Keeps the trading API credential valid without callers noticing:
tokens are decoded locally to find their expiry, renewed through a Basic
authenticated login exchange when fewer than `renewal_buffer_seconds`
remain, and persisted before any waiting caller is released.

Renewal is single-flight per destination. The first caller that finds the
token stale performs the exchange; everyone arriving while it runs waits
on the same future and sees the same token or the same exception.

`start_monitoring` runs the same check on a background interval so the
token is renewed even when no request is being made.
"""

import base64
import binascii
import json
import threading
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Dict, Optional, Union

import requests

from ..config import TokenConfig, get_config
from ..constants import Destination
from ..context.operation_context import operation
from ..exceptions import AuthConfigMissingError, BaseUrlMissingError, RenewalFailedError
from ..schemas.destination_schemas import Credential, DestinationSettings, TokenInfo
from ..utils.logger import get_logger
from ..utils.periodic import PeriodicTask
from .destination_service import DestinationConfigService, coerce_destination


def basic_auth_header(username: str, password: str) -> str:
    encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


def _decode_jwt_payload(token: str) -> Optional[dict]:
    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")))
    except (ValueError, binascii.Error, UnicodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _extract_token_text(response: requests.Response) -> str:
    """Renewal returns the token as raw text or as a JSON string."""
    text = response.text.strip()
    if "json" in response.headers.get("Content-Type", ""):
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, str):
            text = body.strip()
    return text.strip('"').strip()


class TokenLifecycleManager:
    """Keeps per-destination bearer credentials valid."""

    def __init__(
        self,
        destination_service: DestinationConfigService,
        token_config: Optional[TokenConfig] = None,
        timeout: Optional[float] = None,
        http_session: Optional[requests.Session] = None,
    ):
        app_config = get_config()
        self.destination_service = destination_service
        self.config = token_config or app_config.token
        self.timeout = timeout or app_config.transport.default_timeout
        self.http = http_session or requests.Session()
        self._owns_http = http_session is None
        self.logger = get_logger()

        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}
        self._monitor: Optional[PeriodicTask] = None

    def analyze(self, token: Optional[str]) -> TokenInfo:
        """Decode the `exp` claim. Never raises."""
        payload = _decode_jwt_payload(token) if token else None
        exp = payload.get("exp") if payload else None
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return TokenInfo(token=token, is_valid=False, expires_at=None, time_until_expiry=0)

        try:
            expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return TokenInfo(token=token, is_valid=False, expires_at=None, time_until_expiry=0)

        remaining = (expires_at - datetime.now(timezone.utc)).total_seconds()
        return TokenInfo(
            token=token,
            is_valid=remaining > 0,
            expires_at=expires_at,
            time_until_expiry=max(remaining, 0),
        )

    def ensure_valid(
        self, destination: Union[Destination, str] = Destination.TRADING_API, force: bool = False
    ) -> Credential:
        """
        Return a credential valid beyond the renewal buffer, renewing if needed.

        Args:
            destination: Destination whose bearer token is managed
            force: Renew even if the stored token looks valid (after a 401/403)

        Raises:
            AuthConfigMissingError: renewal needed but username/password absent
            RenewalFailedError: the login exchange did not yield a usable token
        """
        destination = coerce_destination(destination)

        if not force:
            settings = self.destination_service.get_settings(destination)
            credential = self._current_credential(settings)
            if credential is not None:
                return credential

        return self._renew_single_flight(destination, force)

    def should_refresh(self, destination: Union[Destination, str] = Destination.TRADING_API) -> bool:
        settings = self.destination_service.get_settings(coerce_destination(destination))
        return self._current_credential(settings) is None

    def get_token_info(
        self, destination: Union[Destination, str] = Destination.TRADING_API
    ) -> Optional[TokenInfo]:
        settings = self.destination_service.get_settings(coerce_destination(destination))
        if not settings.token:
            return None
        return self.analyze(settings.token)

    def start_monitoring(
        self,
        interval_seconds: Optional[float] = None,
        destination: Union[Destination, str] = Destination.TRADING_API,
    ) -> None:
        """
        Check the token in the background and renew it ahead of expiry.

        Does nothing if monitoring is already running.
        """
        destination = coerce_destination(destination)
        with self._lock:
            if self._monitor is not None:
                return
            self._monitor = PeriodicTask(
                f"token-monitor-{destination.value}",
                interval_seconds or self.config.monitor_interval_seconds,
                lambda: self._check_token(destination),
            )
            monitor = self._monitor
        monitor.start()

    def stop_monitoring(self) -> None:
        with self._lock:
            monitor, self._monitor = self._monitor, None
        if monitor is not None:
            monitor.stop()

    def close(self) -> None:
        self.stop_monitoring()
        if self._owns_http:
            self.http.close()

    def _check_token(self, destination: Destination) -> None:
        if not self.should_refresh(destination):
            return
        self.logger.info("Scheduled token renewal", extra={"destination": destination.value})
        self.ensure_valid(destination)

    def _current_credential(self, settings: DestinationSettings) -> Optional[Credential]:
        if not settings.token:
            return None
        info = self.analyze(settings.token)
        if info.expires_at is None or info.time_until_expiry <= self.config.renewal_buffer_seconds:
            return None
        return Credential(token=settings.token, expires_at=info.expires_at, issued_via="stored")

    def _renew_single_flight(self, destination: Destination, force: bool) -> Credential:
        key = destination.value
        with self._lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if not leader:
            self.logger.debug("Waiting for in-flight token renewal", extra={"destination": key})
            return future.result()

        try:
            credential = self._renew(destination, force)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(credential)
            return credential
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    @operation("token_service.renew")
    def _renew(self, destination: Destination, force: bool) -> Credential:
        settings = self.destination_service.get_settings(destination)

        # A renewal that completed while we queued may already be stored
        if not force:
            credential = self._current_credential(settings)
            if credential is not None:
                return credential

        if not settings.has_basic_credentials:
            raise AuthConfigMissingError(destination.value)
        if not settings.base_url:
            raise BaseUrlMissingError(destination.value)

        url = f"{settings.base_url}{self.config.login_path}"
        headers = {
            "Authorization": basic_auth_header(settings.username, settings.password),
            "Content-Type": "application/json",
        }

        try:
            response = self.http.post(url, headers=headers, timeout=settings.timeout or self.timeout)
        except requests.RequestException as e:
            raise RenewalFailedError(
                f"Token renewal request failed: {str(e)}", destination=destination.value, cause=e
            )

        if not 200 <= response.status_code < 300:
            raise RenewalFailedError(
                f"Token renewal returned HTTP {response.status_code}",
                destination=destination.value,
                status=response.status_code,
            )

        token = _extract_token_text(response)
        info = self.analyze(token)
        if info.expires_at is None:
            raise RenewalFailedError(
                "Renewed token has no decodable expiry", destination=destination.value
            )
        if info.time_until_expiry <= self.config.renewal_buffer_seconds:
            raise RenewalFailedError(
                "Renewed token expires inside the renewal buffer",
                destination=destination.value,
                expires_at=info.expires_at.isoformat(),
            )

        self.destination_service.update_credential(destination, token, info.expires_at)

        self.logger.info(
            "Token renewed",
            extra={
                "destination": destination.value,
                "expires_at": info.expires_at.isoformat(),
                "minutes_until_expiry": round(info.time_until_expiry / 60),
            },
        )
        return Credential(token=token, expires_at=info.expires_at, issued_via="renewal")
