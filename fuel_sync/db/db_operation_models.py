"""
Internal operation records written by the synchronization engine.
"""

from sqlalchemy import Column, DateTime, Float, Index, String, Text, UniqueConstraint

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class Operation(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "operations"

    # Dedup key; NULL never conflicts
    external_transaction_id = Column(String(100), nullable=True)

    trading_point_id = Column(String(36), nullable=False, index=True)
    trading_point_name = Column(String(200), nullable=True)

    operation_type = Column(String(50), nullable=False)
    fuel_type = Column(String(100), nullable=True)
    quantity = Column(Float, nullable=False, default=0)
    price = Column(Float, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0)
    payment_method = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    device_id = Column(String(100), nullable=True)
    operator_name = Column(String(200), nullable=True)
    details = Column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    operation_metadata = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "trading_point_id",
            "external_transaction_id",
            name="uq_operations_trading_point_external_id",
        ),
        Index("ix_operations_start_time", "start_time"),
    )
