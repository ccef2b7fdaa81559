"""
Pydantic schemas for destination configuration and bearer credentials.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import AuthMode, Destination


class DestinationSettings(BaseModel):
    """Snapshot of one destination_configs row, read at the start of every call."""

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)

    destination: Destination
    base_url: Optional[str] = Field(None, description="Scheme + host (+ optional prefix)")
    auth_mode: AuthMode = Field(default=AuthMode.NONE)
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    timeout: Optional[float] = Field(None, gt=0, description="Request timeout (seconds)")
    retry_attempts: Optional[int] = Field(None, ge=1)
    endpoints: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        if v:
            v = v.rstrip("/")
        return v or None

    @field_validator("endpoints", mode="before")
    @classmethod
    def default_endpoints(cls, v):
        return v or {}

    @property
    def has_basic_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)


class Credential(BaseModel):
    """A bearer token known to be valid beyond the renewal buffer."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1)
    expires_at: datetime
    issued_via: str = Field(..., description="'stored' or 'renewal'")


class TokenInfo(BaseModel):
    """Result of decoding a bearer token's expiry claim."""

    token: Optional[str] = None
    is_valid: bool = False
    expires_at: Optional[datetime] = None
    time_until_expiry: float = Field(default=0, description="Seconds until expiry, never negative")
