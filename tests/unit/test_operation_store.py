"""
Tests for operation persistence against the real SQLite database.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from fuel_sync.constants import OperationStatus, OperationType, PaymentMethod
from fuel_sync.db.db_operation_models import Operation
from fuel_sync.exceptions import ErrorCode, RepositoryError
from fuel_sync.schemas.transaction_schemas import OperationRecord
from fuel_sync.services.operation_store import OperationStore

MSK = timezone(timedelta(hours=3))


def make_record(external_id="tx-1", trading_point_id="tp-1", quantity=10.0, **overrides):
    data = dict(
        external_transaction_id=external_id,
        trading_point_id=trading_point_id,
        trading_point_name="Station 1",
        operation_type=OperationType.SALE,
        fuel_type="AI-95",
        quantity=quantity,
        price=50.0,
        total_cost=quantity * 50.0,
        payment_method=PaymentMethod.BANK_CARD,
        status=OperationStatus.COMPLETED,
        start_time=datetime(2024, 3, 1, 10, 0, tzinfo=MSK),
        end_time=datetime(2024, 3, 1, 10, 0, tzinfo=MSK),
        device_id="POS-4",
        metadata={"source": "trading_api_sync", "original_transaction": {"id": external_id}},
    )
    data.update(overrides)
    return OperationRecord(**data)


@pytest.fixture
def store(db_session):
    return OperationStore(session=db_session)


class TestUpsertBatch:
    def test_inserts_new_records(self, store, db_session):
        written = store.upsert_batch([make_record("tx-1"), make_record("tx-2")])

        assert written == 2
        row = db_session.query(Operation).filter_by(external_transaction_id="tx-1").one()
        assert row.operation_type == "sale"
        assert row.payment_method == "bank_card"
        assert row.operation_metadata["source"] == "trading_api_sync"

    def test_times_stored_as_same_instant(self, store, db_session):
        store.upsert_batch([make_record("tx-1")])

        row = db_session.query(Operation).one()
        stored = row.start_time.replace(tzinfo=row.start_time.tzinfo or timezone.utc)
        assert stored == datetime(2024, 3, 1, 7, 0, tzinfo=timezone.utc)

    def test_conflicts_are_skipped(self, store):
        store.upsert_batch([make_record("tx-1")])

        written = store.upsert_batch([make_record("tx-1", quantity=99), make_record("tx-2")])

        assert written == 1
        assert store.count_operations("tp-1") == 2

    def test_same_id_on_other_station_is_not_a_conflict(self, store):
        store.upsert_batch([make_record("tx-1", trading_point_id="tp-1")])

        assert store.upsert_batch([make_record("tx-1", trading_point_id="tp-2")]) == 1

    def test_overwrite_updates_existing_rows(self, store, db_session):
        store.upsert_batch([make_record("tx-1", quantity=10)])
        first_id = db_session.query(Operation).one().id

        written = store.upsert_batch([make_record("tx-1", quantity=20)], overwrite=True)

        db_session.expire_all()
        row = db_session.query(Operation).one()
        assert written == 1
        assert row.quantity == 20
        assert row.id == first_id

    def test_records_without_id_always_inserted(self, store):
        store.upsert_batch([make_record(None), make_record(None)])
        store.upsert_batch([make_record(None)])

        assert store.count_operations() == 3

    def test_empty_batch(self, store):
        assert store.upsert_batch([]) == 0

    def test_database_failure_raises(self, store):
        with patch.object(
            store.session, "execute", side_effect=OperationalError("INSERT", {}, Exception("locked"))
        ):
            with pytest.raises(RepositoryError) as exc_info:
                store.upsert_batch([make_record()])

        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR


class TestInsertOne:
    def test_new_record(self, store):
        assert store.insert_one(make_record("tx-1")) is True
        assert store.count_operations() == 1

    def test_duplicate_returns_false(self, store):
        store.insert_one(make_record("tx-1"))

        assert store.insert_one(make_record("tx-1")) is False
        assert store.count_operations() == 1

    def test_overwrite(self, store, db_session):
        store.insert_one(make_record("tx-1", quantity=1))

        assert store.insert_one(make_record("tx-1", quantity=2), overwrite=True) is True
        db_session.expire_all()
        assert db_session.query(Operation).one().quantity == 2

    def test_other_integrity_errors_raise(self, store):
        error = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: operations.status"))
        with patch.object(store.session, "execute", side_effect=error):
            with pytest.raises(RepositoryError) as exc_info:
                store.insert_one(make_record("tx-1"))

        assert exc_info.value.error_code == ErrorCode.CONSTRAINT_VIOLATION


class TestLoadExistingIds:
    def test_scoped_to_trading_point(self, store):
        store.upsert_batch(
            [
                make_record("tx-1", trading_point_id="tp-1"),
                make_record("tx-2", trading_point_id="tp-1"),
                make_record(None, trading_point_id="tp-1"),
                make_record("tx-3", trading_point_id="tp-2"),
            ]
        )

        assert store.load_existing_ids("tp-1") == {"tx-1", "tx-2"}
        assert store.load_existing_ids("tp-3") == set()
