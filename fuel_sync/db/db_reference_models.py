"""
Reference data for station resolution: networks and their trading points.
"""

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class Network(Base, UUIDMixin, TimestampMixin):
    """A trading network (operator) as known to the upstream API."""

    __tablename__ = "networks"

    name = Column(String(200), nullable=False)
    external_id = Column(String(100), nullable=True, index=True)
    code = Column(String(100), nullable=True, index=True)

    trading_points = relationship("TradingPoint", back_populates="network")

    @property
    def system_id(self):
        """External network id, falling back to the network code."""
        return (self.external_id or "").strip() or (self.code or "").strip() or None


class TradingPoint(Base, UUIDMixin, TimestampMixin):
    """A single fuel station."""

    __tablename__ = "trading_points"

    name = Column(String(200), nullable=False)
    network_id = Column(String(36), ForeignKey("networks.id"), nullable=False, index=True)
    external_id = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    network = relationship("Network", back_populates="trading_points")
