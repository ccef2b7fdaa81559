"""
Unit tests for operation context logging and error enrichment.
"""

from unittest.mock import Mock

import pytest

from fuel_sync.context.operation_context import OperationContext, OperationHandler, operation
from fuel_sync.exceptions import BaseError, clear_correlation_id, get_correlation_id


class TestOperationContext:
    def test_generates_and_publishes_correlation_id(self):
        ctx = OperationContext("sync")

        assert ctx.correlation_id
        assert get_correlation_id() == ctx.correlation_id
        assert ctx.context["operation_id"] == ctx.operation_id

    def test_nested_context_inherits_correlation_id(self):
        outer = OperationContext("outer")
        inner = OperationContext("inner")

        assert inner.correlation_id == outer.correlation_id
        assert inner.operation_id != outer.operation_id


class TestOperationHandler:
    def test_logs_enter_and_exit(self):
        logger = Mock()
        handler = OperationHandler(logger=logger)

        with handler.operation("fetch", station_id="4") as ctx:
            ctx.add_metric("records", 3)

        messages = [call.args[0] for call in logger.info.call_args_list]
        assert messages == ["ENTER: fetch", "EXIT: fetch"]
        exit_extra = logger.info.call_args_list[1].kwargs["extra"]
        assert exit_extra["status"] == "success"
        assert exit_extra["records"] == 3
        assert exit_extra["station_id"] == "4"

    def test_base_error_is_enriched_and_reraised(self):
        logger = Mock()
        handler = OperationHandler(logger=logger)

        with pytest.raises(BaseError) as exc_info:
            with handler.operation("persist"):
                raise BaseError("Write failed")

        assert exc_info.value.context["operation_name"] == "persist"
        assert logger.error.call_args.args[0].startswith("ERROR: persist")

    def test_other_exceptions_are_logged_with_traceback(self):
        logger = Mock()
        handler = OperationHandler(logger=logger)

        with pytest.raises(KeyError):
            with handler.operation("transform"):
                raise KeyError("dt")

        assert logger.exception.call_args.kwargs["extra"]["error_type"] == "KeyError"


class TestOperationDecorator:
    def test_named_decorator_returns_value(self):
        @operation("demo.add")
        def add(a, b):
            return a + b

        assert add(2, 3) == 5

    def test_bare_decorator(self):
        class Worker:
            @operation
            def run(self):
                return get_correlation_id()

        clear_correlation_id()
        assert Worker().run() is not None
