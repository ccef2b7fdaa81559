"""
Destination configuration model.

One row per logical HTTP destination. The core only writes the bearer
token columns; everything else is maintained by operators.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class DestinationConfig(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "destination_configs"

    destination = Column(String(50), nullable=False, unique=True, index=True)
    base_url = Column(String(500), nullable=True)
    auth_mode = Column(String(20), nullable=False, default="none")

    username = Column(String(200), nullable=True)
    password = Column(String(200), nullable=True)

    # Bearer credential, replaced wholesale on renewal
    token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    timeout = Column(Float, nullable=True)
    retry_attempts = Column(Integer, nullable=True)
    endpoints = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
