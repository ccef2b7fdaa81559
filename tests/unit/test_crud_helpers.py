"""
Unit tests for the generic CRUD helpers, run against the reference-data models.
"""

import pytest

from fuel_sync.db.db_reference_models import Network, TradingPoint
from fuel_sync.exceptions import ErrorCode, RepositoryError
from fuel_sync.utils.crud_helpers import (
    count_records,
    create_record,
    get_record,
    get_record_by_id,
    list_records,
    record_exists,
    update_record,
)


class TestCreateRecord:
    def test_create_sets_timestamps(self, db_session):
        record = create_record(db_session, Network, {"name": "South", "external_id": "16"})

        assert record.id is not None
        assert record.created_at is not None
        assert record.updated_at is not None
        assert get_record_by_id(db_session, Network, record.id) is record

    def test_create_failure_raises_repository_error(self, db_session):
        with pytest.raises(RepositoryError) as exc_info:
            create_record(db_session, TradingPoint, {"name": "Orphan"})

        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR
        assert exc_info.value.context["model"] == "TradingPoint"


class TestQueries:
    def test_get_record_ignores_none_filters(self, db_session, network):
        assert get_record(db_session, Network, {"external_id": "15", "code": None}) is network

    def test_list_records_orders_by_columns(self, db_session, trading_point_factory):
        trading_point_factory(name="Bravo", external_id="2")
        trading_point_factory(name="Alpha", external_id="1")
        trading_point_factory(name="Charlie", external_id="3", is_active=False)

        names = [
            tp.name
            for tp in list_records(
                db_session, TradingPoint, filters={"is_active": True}, order_by=["name"]
            )
        ]

        assert names == ["Alpha", "Bravo"]

    def test_list_records_limit_offset(self, db_session, trading_point_factory):
        for i in range(5):
            trading_point_factory(name=f"Station {i}", external_id=str(i))

        page = list_records(db_session, TradingPoint, order_by=["name"], limit=2, offset=2)

        assert [tp.name for tp in page] == ["Station 2", "Station 3"]

    def test_count_and_exists(self, db_session, trading_point_factory):
        trading_point_factory(external_id="4")
        trading_point_factory(name="Station 2", external_id="5", is_active=False)

        assert count_records(db_session, TradingPoint) == 2
        assert count_records(db_session, TradingPoint, {"is_active": False}) == 1
        assert record_exists(db_session, TradingPoint, {"external_id": "5"})
        assert not record_exists(db_session, TradingPoint, {"external_id": "6"})


class TestUpdateRecord:
    def test_update_ignores_none_values(self, db_session, network):
        updated = update_record(db_session, Network, network.id, {"name": "Renamed", "code": None})

        assert updated.name == "Renamed"
        assert updated.code == "north"

    def test_update_missing_record(self, db_session):
        with pytest.raises(RepositoryError) as exc_info:
            update_record(db_session, Network, "missing-id", {"name": "x"})

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND
        assert exc_info.value.status_code == 404
