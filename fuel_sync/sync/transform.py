"""
Turn upstream transaction payloads into operation records.

Upstream field names drift between deployments, so every logical field is
looked up through an ordered list of accepted names. Missing or
unreadable numbers become 0 and are listed in the record metadata; an
unreadable timestamp leaves start_time empty and is kept verbatim. Only a
record that is not an object is rejected.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..constants import (
    DEFAULT_OPERATION_TYPE,
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_STATUS,
    PAY_TYPE_NAME_RULES,
    PAYMENT_METHOD_MAPPING,
    STATUS_MAPPING,
    SYNC_SOURCE,
    TRANSACTION_TYPE_MAPPING,
    OperationStatus,
    OperationType,
    PaymentMethod,
)
from ..schemas.sync_schemas import StationMapping
from ..schemas.transaction_schemas import ExternalTransaction, OperationRecord
from ..utils.logger import get_logger

ID_FIELDS = ("id", "transaction_id", "trans_id")
TIMESTAMP_FIELDS = ("dt", "timestamp", "date", "datetime", "created_at", "transaction_date")
FUEL_FIELDS = ("fuel_name", "fuel_type", "product_name", "product_type")
QUANTITY_FIELDS = ("quantity", "volume", "liters")
PRICE_FIELDS = ("price", "price_per_liter", "unit_price", "liter_price")
TOTAL_FIELDS = ("cost", "amount", "sum", "total", "total_amount")
PAYMENT_FIELDS = ("payment_method", "payment_type")
TYPE_FIELDS = ("transaction_type", "operation_type", "type")
STATION_FIELDS = ("station_id", "station")
DEVICE_FIELDS = ("pos_id", "terminal_id", "device_id", "pos")

# Upstream timestamps without an offset are station-local time
DEFAULT_UTC_OFFSET = timezone(timedelta(hours=3))

# Tried after ISO-8601, against the value with its date/time separator normalized
LOCAL_TIMESTAMP_FORMATS = ("%d.%m.%Y %H:%M:%S", "%d.%m.%Y %H:%M", "%d.%m.%Y")

# Epoch values above this are milliseconds
_EPOCH_MILLIS_THRESHOLD = 10**11


def extract_transactions(payload: Any) -> List[Dict[str, Any]]:
    """
    Decode a transactions response body.

    Accepts a bare array, or an object carrying the array under
    `transactions` or `data`. Any other shape decodes to an empty list
    with a warning.
    """
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict) and isinstance(payload.get("transactions"), list):
        items = payload["transactions"]
    elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
        items = payload["data"]
    else:
        get_logger().warning(
            "Unrecognized transactions payload, treating as empty",
            extra={"payload_type": type(payload).__name__},
        )
        return []
    return items


def _first(raw: Dict[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(
    raw: Dict[str, Any],
    names: Iterable[str],
    field: str,
    missing: List[str],
    malformed: List[str],
) -> float:
    value = _first(raw, names)
    if value is None:
        missing.append(field)
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", ".").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        malformed.append(field)
        return 0.0
    if not math.isfinite(number):
        malformed.append(field)
        return 0.0
    return number


def parse_external_transaction(raw: Dict[str, Any]) -> ExternalTransaction:
    """
    Resolve field-name variants of one upstream record.

    Raises:
        TypeError: the record is not a JSON object
    """
    if not isinstance(raw, dict):
        raise TypeError(f"Transaction record must be an object, got {type(raw).__name__}")

    missing: List[str] = []
    malformed: List[str] = []
    pay_type = raw.get("pay_type")
    customer = raw.get("customer_info") if isinstance(raw.get("customer_info"), dict) else {}

    return ExternalTransaction(
        external_id=_text(_first(raw, ID_FIELDS)),
        station_external_id=_text(_first(raw, STATION_FIELDS)),
        timestamp=_text(_first(raw, TIMESTAMP_FIELDS)),
        fuel_code=_text(_first(raw, FUEL_FIELDS)),
        quantity=_number(raw, QUANTITY_FIELDS, "quantity", missing, malformed),
        unit_price=_number(raw, PRICE_FIELDS, "price", missing, malformed),
        total_amount=_number(raw, TOTAL_FIELDS, "total_cost", missing, malformed),
        payment_method_code=_text(_first(raw, PAYMENT_FIELDS)),
        pay_type_name=_text(pay_type.get("name")) if isinstance(pay_type, dict) else None,
        operation_type_code=_text(_first(raw, TYPE_FIELDS)),
        status=_text(raw.get("status")),
        device_id=_text(_first(raw, DEVICE_FIELDS)),
        operator_id=_text(raw.get("operator_id")),
        receipt_number=_text(raw.get("receipt_number")),
        shift_id=_text(raw.get("shift_id")),
        customer_id=_text(customer.get("id")),
        vehicle_number=_text(customer.get("vehicle_number")),
        missing_fields=missing,
        malformed_fields=malformed,
        raw=raw,
    )


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an upstream timestamp.

    Accepts ISO-8601, epoch seconds or milliseconds, and dd.mm.yyyy dates.
    Values without an offset are read as UTC+03:00.

    Raises:
        ValueError: the value matches none of the accepted forms
    """
    if not value:
        return None
    text = value.strip()

    if text.isdigit():
        epoch = int(text)
        if epoch > _EPOCH_MILLIS_THRESHOLD:
            epoch = epoch / 1000
        try:
            return datetime.fromtimestamp(epoch, tz=timezone.utc).astimezone(DEFAULT_UTC_OFFSET)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Epoch timestamp out of range: {text}") from e

    iso = text.replace(" ", "T", 1)
    if iso.endswith(("Z", "z")):
        iso = f"{iso[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        parsed = _parse_local_format(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=DEFAULT_UTC_OFFSET)
    return parsed


def _parse_local_format(text: str) -> datetime:
    normalized = text.replace("T", " ", 1)
    for fmt in LOCAL_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(normalized, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized timestamp: {text!r}")


def map_operation_type(code: Optional[str]) -> OperationType:
    if not code:
        return DEFAULT_OPERATION_TYPE
    return TRANSACTION_TYPE_MAPPING.get(code.lower(), DEFAULT_OPERATION_TYPE)


def map_status(code: Optional[str]) -> OperationStatus:
    if not code:
        return DEFAULT_STATUS
    return STATUS_MAPPING.get(code.lower(), DEFAULT_STATUS)


def map_payment_method(code: Optional[str], pay_type_name: Optional[str] = None) -> PaymentMethod:
    """Free-text pay_type names win over payment codes; unknown values fall back to cash."""
    if pay_type_name:
        name = pay_type_name.lower()
        for fragment, method in PAY_TYPE_NAME_RULES:
            if fragment in name:
                return method
    if code:
        return PAYMENT_METHOD_MAPPING.get(code.lower(), DEFAULT_PAYMENT_METHOD)
    return DEFAULT_PAYMENT_METHOD


def to_operation_record(tx: ExternalTransaction, station: StationMapping) -> OperationRecord:
    """
    Build the operations row for one upstream transaction.

    Never fails on field content: unreadable values degrade to defaults
    and are recorded in the metadata.
    """
    status = map_status(tx.status)
    try:
        start_time = parse_timestamp(tx.timestamp)
        unparsed_timestamp = None
    except ValueError:
        start_time = None
        unparsed_timestamp = tx.timestamp

    metadata: Dict[str, Any] = {
        "source": SYNC_SOURCE,
        "system_id": station.system_id,
        "station_id": station.station_id,
        "shift_id": tx.shift_id,
        "receipt_number": tx.receipt_number,
        "customer_id": tx.customer_id,
        "vehicle_number": tx.vehicle_number,
        "original_transaction": tx.raw,
    }
    if tx.missing_fields:
        metadata["missing_fields"] = list(tx.missing_fields)
    if tx.malformed_fields:
        metadata["malformed_fields"] = list(tx.malformed_fields)
    if unparsed_timestamp is not None:
        metadata["unparsed_timestamp"] = unparsed_timestamp

    if tx.malformed_fields or unparsed_timestamp is not None:
        get_logger().warning(
            "Transaction fields degraded to defaults",
            extra={
                "external_transaction_id": tx.external_id,
                "trading_point_id": station.trading_point_id,
                "malformed_fields": ",".join(tx.malformed_fields),
                "unparsed_timestamp": unparsed_timestamp,
            },
        )

    return OperationRecord(
        external_transaction_id=tx.external_id,
        trading_point_id=station.trading_point_id,
        trading_point_name=station.trading_point_name,
        operation_type=map_operation_type(tx.operation_type_code),
        fuel_type=tx.fuel_code,
        quantity=tx.quantity,
        price=tx.unit_price,
        total_cost=tx.total_amount,
        payment_method=map_payment_method(tx.payment_method_code, tx.pay_type_name),
        status=status,
        start_time=start_time,
        end_time=start_time if status == OperationStatus.COMPLETED else None,
        device_id=tx.device_id or f"POS-{station.station_id}",
        operator_name=tx.operator_id,
        details=f"Imported from trading API. Receipt: {tx.receipt_number or 'N/A'}",
        metadata=metadata,
    )


def transform_transaction(raw: Dict[str, Any], station: StationMapping) -> OperationRecord:
    return to_operation_record(parse_external_transaction(raw), station)
