"""
Read and update persisted destination configuration.
"""

import os
from datetime import datetime
from typing import List, Union

from ..constants import AuthMode, Destination, EnvironmentVariable
from ..db.db_base import as_utc
from ..db.db_destination_models import DestinationConfig
from ..exceptions import UnknownDestinationError
from ..schemas.destination_schemas import DestinationSettings
from ..utils.crud_helpers import create_record, get_record, update_record
from .base_service import SessionManagedService


def coerce_destination(destination: Union[Destination, str]) -> Destination:
    """Map a destination name onto the closed Destination set."""
    if isinstance(destination, Destination):
        return destination
    try:
        return Destination(destination)
    except ValueError:
        raise UnknownDestinationError(destination)


class DestinationConfigService(SessionManagedService):
    """
    Access to destination_configs rows.

    Rows are re-read on every call; a destination without a row yields
    empty settings rather than an error so callers can report exactly
    which part is missing.
    """

    def get_settings(self, destination: Union[Destination, str]) -> DestinationSettings:
        destination = coerce_destination(destination)
        with self.session_lock:
            row = get_record(self.session, DestinationConfig, {"destination": destination.value})
            if row is None:
                return DestinationSettings(destination=destination)
            self.session.refresh(row)
            settings = DestinationSettings.model_validate(row)
        if settings.token_expires_at is not None:
            settings.token_expires_at = as_utc(settings.token_expires_at)
        return settings

    def save_settings(self, settings: DestinationSettings) -> DestinationSettings:
        """Create or update the row for settings.destination."""
        data = settings.model_dump(exclude={"destination"})
        data["auth_mode"] = settings.auth_mode.value
        with self.session_lock:
            row = get_record(
                self.session, DestinationConfig, {"destination": settings.destination.value}
            )
            if row is None:
                data["destination"] = settings.destination.value
                create_record(self.session, DestinationConfig, data)
            else:
                update_record(self.session, DestinationConfig, row.id, data)
        return self.get_settings(settings.destination)

    def update_credential(
        self, destination: Union[Destination, str], token: str, expires_at: datetime
    ) -> None:
        """Replace the stored bearer token and its expiry in one commit."""
        destination = coerce_destination(destination)
        with self.session_lock:
            row = get_record(self.session, DestinationConfig, {"destination": destination.value})
            if row is None:
                create_record(
                    self.session,
                    DestinationConfig,
                    {
                        "destination": destination.value,
                        "auth_mode": AuthMode.BEARER.value,
                        "token": token,
                        "token_expires_at": expires_at,
                    },
                )
            else:
                update_record(
                    self.session,
                    DestinationConfig,
                    row.id,
                    {"token": token, "token_expires_at": expires_at},
                )

        self.logger.info(
            "Stored renewed credential",
            extra={"destination": destination.value, "expires_at": expires_at.isoformat()},
        )

    def seed_from_env(self) -> List[DestinationSettings]:
        """Write destination rows from environment variables where they are set."""
        seeded = []

        trading_url = os.getenv(EnvironmentVariable.TRADING_API_BASE_URL.value)
        if trading_url:
            seeded.append(
                self.save_settings(
                    DestinationSettings(
                        destination=Destination.TRADING_API,
                        base_url=trading_url,
                        auth_mode=os.getenv(
                            EnvironmentVariable.TRADING_API_AUTH_MODE.value, AuthMode.BEARER.value
                        ),
                        username=os.getenv(EnvironmentVariable.TRADING_API_USERNAME.value),
                        password=os.getenv(EnvironmentVariable.TRADING_API_PASSWORD.value),
                        token=os.getenv(EnvironmentVariable.TRADING_API_TOKEN.value),
                    )
                )
            )

        store_url = os.getenv(EnvironmentVariable.DATA_STORE_BASE_URL.value)
        if store_url:
            seeded.append(
                self.save_settings(
                    DestinationSettings(destination=Destination.DATA_STORE, base_url=store_url)
                )
            )

        return seeded
