"""
Upstream transaction records and the internal operation rows built from them.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import OperationStatus, OperationType, PaymentMethod


class ExternalTransaction(BaseModel):
    """
    One upstream transaction after field-name variants have been resolved.

    `raw` keeps the payload exactly as received. `missing_fields` lists the
    numeric fields that were absent and `malformed_fields` those that held
    something other than a finite number; both defaulted to 0.
    """

    model_config = ConfigDict(frozen=True)

    external_id: Optional[str] = None
    station_external_id: Optional[str] = None
    timestamp: Optional[str] = None
    fuel_code: Optional[str] = None
    quantity: float = 0
    unit_price: float = 0
    total_amount: float = 0
    payment_method_code: Optional[str] = None
    pay_type_name: Optional[str] = None
    operation_type_code: Optional[str] = None
    status: Optional[str] = None
    device_id: Optional[str] = None
    operator_id: Optional[str] = None
    receipt_number: Optional[str] = None
    shift_id: Optional[str] = None
    customer_id: Optional[str] = None
    vehicle_number: Optional[str] = None
    missing_fields: List[str] = Field(default_factory=list)
    malformed_fields: List[str] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)


class OperationRecord(BaseModel):
    """An operations row ready to be written."""

    external_transaction_id: Optional[str] = None
    trading_point_id: str
    trading_point_name: Optional[str] = None
    operation_type: OperationType
    fuel_type: Optional[str] = None
    quantity: float = 0
    price: float = 0
    total_cost: float = 0
    payment_method: PaymentMethod
    status: OperationStatus
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    device_id: Optional[str] = None
    operator_name: Optional[str] = None
    details: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        """Values keyed by operations table column name."""
        row = self.model_dump(mode="python")
        row["operation_type"] = self.operation_type.value
        row["payment_method"] = self.payment_method.value
        row["status"] = self.status.value
        return row
