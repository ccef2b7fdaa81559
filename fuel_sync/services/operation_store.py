"""
Persistence of operation records keyed on (trading_point_id, external_transaction_id).
"""

import uuid
from datetime import timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db.db_base import utc_now
from ..db.db_operation_models import Operation
from ..exceptions import ErrorCode, RepositoryError, is_duplicate_key_error
from ..schemas.transaction_schemas import OperationRecord
from .base_service import SessionManagedService

CONFLICT_COLUMNS = ("trading_point_id", "external_transaction_id")

# Never rewritten by an overwriting upsert
_IMMUTABLE_COLUMNS = {"id", "created_at", *CONFLICT_COLUMNS}


class OperationStore(SessionManagedService):
    """Data-store client for the sync engine: dedup id loading and batched upserts."""

    def load_existing_ids(self, trading_point_id: str) -> Set[str]:
        """External transaction ids already stored for the trading point."""
        with self.session_lock:
            try:
                rows = self.session.execute(
                    select(Operation.external_transaction_id).where(
                        Operation.trading_point_id == trading_point_id,
                        Operation.external_transaction_id.is_not(None),
                    )
                )
                ids = {row[0] for row in rows}
                self.session.commit()
                return ids
            except SQLAlchemyError as e:
                self._handle_repository_exception("load_existing_ids", e)

    def upsert_batch(self, records: List[OperationRecord], overwrite: bool = False) -> int:
        """
        Insert records in one statement, resolving key conflicts in the database.

        Conflicting rows are left untouched, or overwritten when `overwrite`
        is set. Returns the number of rows written.

        Raises:
            RepositoryError: the statement failed; nothing from the batch is kept
        """
        if not records:
            return 0

        with self.session_lock:
            try:
                stmt = self._upsert_statement([self._row(r) for r in records], overwrite)
                result = self.session.execute(stmt)
                self.session.commit()
                # rowcount counts rows inserted or updated, not conflicts skipped
                return max(result.rowcount, 0)
            except SQLAlchemyError as e:
                self._handle_repository_exception("upsert_batch", e)

    def insert_one(self, record: OperationRecord, overwrite: bool = False) -> bool:
        """
        Write a single record.

        Returns:
            True if written, False if the key already exists

        Raises:
            RepositoryError: any failure other than a duplicate key
        """
        row = self._row(record)
        with self.session_lock:
            try:
                if overwrite:
                    self.session.execute(self._upsert_statement([row], overwrite=True))
                else:
                    self.session.execute(Operation.__table__.insert().values(row))
                self.session.commit()
                return True
            except IntegrityError as e:
                self.session.rollback()
                if is_duplicate_key_error(e):
                    return False
                raise RepositoryError(
                    f"Failed to insert operation: {str(e.orig)}",
                    error_code=ErrorCode.CONSTRAINT_VIOLATION,
                    cause=e,
                    external_transaction_id=record.external_transaction_id,
                )
            except SQLAlchemyError as e:
                self._handle_repository_exception("insert_one", e)

    def count_operations(self, trading_point_id: Optional[str] = None) -> int:
        query = select(func.count()).select_from(Operation)
        if trading_point_id is not None:
            query = query.where(Operation.trading_point_id == trading_point_id)
        with self.session_lock:
            return self.session.execute(query).scalar_one()

    def _row(self, record: OperationRecord) -> dict:
        row = record.to_row()
        now = utc_now()
        row["id"] = str(uuid.uuid4())
        row["created_at"] = now
        row["updated_at"] = now
        for column in ("start_time", "end_time"):
            if row[column] is not None and row[column].tzinfo is not None:
                row[column] = row[column].astimezone(timezone.utc)
        return row

    def _upsert_statement(self, rows: Iterable[dict], overwrite: bool):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise RepositoryError(
                f"Upsert is not supported for dialect '{dialect}'",
                error_code=ErrorCode.CONFIGURATION_ERROR,
            )

        stmt = insert(Operation.__table__).values(list(rows))
        if not overwrite:
            return stmt.on_conflict_do_nothing(index_elements=list(CONFLICT_COLUMNS))

        return stmt.on_conflict_do_update(
            index_elements=list(CONFLICT_COLUMNS),
            set_={
                column.name: stmt.excluded[column.name]
                for column in Operation.__table__.columns
                if column.name not in _IMMUTABLE_COLUMNS
            },
        )
