"""
Generic CRUD helpers shared by the reference-data and configuration services.

These functions work with any SQLAlchemy model; callers own the session.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.orm import Session

from ..exceptions import ErrorCode, RepositoryError, not_found
from .logger import get_logger

T = TypeVar("T")


def _apply_filters(query, model_class, filters: Optional[Dict[str, Any]]):
    if filters:
        for key, value in filters.items():
            if hasattr(model_class, key) and value is not None:
                query = query.filter(getattr(model_class, key) == value)
    return query


def create_record(session: Session, model_class: Type[T], data: Dict[str, Any]) -> T:
    """
    Generic create operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        data: Data dictionary

    Returns:
        Created record instance

    Raises:
        RepositoryError: If creation fails
    """
    logger = get_logger()

    try:
        now = datetime.now(timezone.utc)
        if hasattr(model_class, "created_at"):
            data.setdefault("created_at", now)
        if hasattr(model_class, "updated_at"):
            data.setdefault("updated_at", now)

        record = model_class(**data)
        session.add(record)
        session.commit()

        logger.info(
            f"Created {model_class.__name__}",
            extra={"model": model_class.__name__, "record_id": getattr(record, "id", None)},
        )

        return record

    except Exception as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to create {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        )


def get_record(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> Optional[T]:
    """Return the first record matching the filters, or None."""
    query = _apply_filters(session.query(model_class), model_class, filters)
    return query.first()


def get_record_by_id(session: Session, model_class: Type[T], record_id: str) -> Optional[T]:
    return get_record(session, model_class, {"id": record_id})


def update_record(
    session: Session,
    model_class: Type[T],
    record_id: str,
    data: Dict[str, Any],
) -> T:
    """
    Generic update operation for any model.

    None values in `data` are ignored; the whole update commits at once.

    Raises:
        RepositoryError: NOT_FOUND if the record does not exist, DATABASE_ERROR
            if the commit fails
    """
    logger = get_logger()

    record = get_record_by_id(session, model_class, record_id)
    if not record:
        raise not_found(model_class.__name__, record_id=record_id)

    try:
        for key, value in data.items():
            if hasattr(record, key) and value is not None:
                setattr(record, key, value)

        if hasattr(record, "updated_at"):
            record.updated_at = datetime.now(timezone.utc)

        session.commit()

        logger.info(
            f"Updated {model_class.__name__}",
            extra={"model": model_class.__name__, "record_id": record_id},
        )

        return record

    except Exception as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to update {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
            record_id=record_id,
        )


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    order_by: Optional[Sequence[str]] = None,
) -> List[T]:
    """
    Generic list operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        filters: Optional equality filters
        limit: Optional limit
        offset: Optional offset
        order_by: Optional column names, applied in order

    Returns:
        List of record instances
    """
    query = _apply_filters(session.query(model_class), model_class, filters)

    if order_by:
        for column in order_by:
            if hasattr(model_class, column):
                query = query.order_by(getattr(model_class, column))
    elif hasattr(model_class, "created_at"):
        query = query.order_by(model_class.created_at.desc())  # type: ignore[attr-defined]

    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    return query.all()


def count_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
) -> int:
    query = _apply_filters(session.query(model_class), model_class, filters)
    return query.count()


def record_exists(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> bool:
    return get_record(session, model_class, filters) is not None
