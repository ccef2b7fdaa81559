"""
Unit tests for the exception system.

Tests the base error, the configuration, authentication and station
resolution subclasses, factory functions and correlation id handling.
"""

from sqlalchemy.exc import IntegrityError

from fuel_sync.exceptions import (
    AuthConfigMissingError,
    BaseError,
    BaseUrlMissingError,
    ConfigurationError,
    ErrorCode,
    ExternalIdMissingError,
    ExternalServiceError,
    NetworkNotFoundError,
    RenewalFailedError,
    StationResolutionError,
    SyncAlreadyRunningError,
    TradingPointNotFoundError,
    UnknownDestinationError,
    clear_correlation_id,
    get_correlation_id,
    is_duplicate_key_error,
    not_found,
    set_correlation_id,
)


class TestBaseError:
    """Test BaseError class."""

    def test_basic_error_creation(self):
        error = BaseError("Test error message")

        assert error.message == "Test error message"
        assert error.error_code == ErrorCode.INTERNAL_ERROR
        assert error.status_code == 500
        assert error.cause is None
        assert error.context["error_id"] == error.error_id

    def test_error_with_cause(self):
        original_error = ValueError("Original error")
        error = BaseError("Wrapped error", cause=original_error)

        assert error.context["cause"]["type"] == "ValueError"
        assert error.context["cause"]["message"] == "Original error"

    def test_error_with_correlation_id(self):
        set_correlation_id("corr-123")
        try:
            error = BaseError("Correlated")
            assert error.context["correlation_id"] == "corr-123"
            assert error.to_dict()["error"]["correlation_id"] == "corr-123"
        finally:
            clear_correlation_id()

    def test_to_dict_hides_internal_context(self):
        error = BaseError("Boom", cause=RuntimeError("inner"), trading_point_id="tp-1")

        data = error.to_dict()
        assert data["error"]["context"] == {"trading_point_id": "tp-1"}
        assert "cause" not in data["error"]

        data = error.to_dict(include_cause=True)
        assert data["error"]["cause"] == {"type": "RuntimeError", "message": "inner"}

    def test_add_context_is_fluent(self):
        error = BaseError("Boom")
        assert error.add_context(station_id="4") is error
        assert error.context["station_id"] == "4"


class TestConfigurationErrors:
    """Configuration failures share one base class."""

    def test_unknown_destination(self):
        error = UnknownDestinationError("billing")

        assert isinstance(error, ConfigurationError)
        assert error.context["destination"] == "billing"
        assert "billing" in error.message

    def test_base_url_missing(self):
        error = BaseUrlMissingError("trading-api")

        assert isinstance(error, ConfigurationError)
        assert error.error_code == ErrorCode.MISSING_REQUIRED

    def test_auth_config_missing(self):
        error = AuthConfigMissingError("trading-api")

        assert isinstance(error, ConfigurationError)
        assert "Username and password" in error.message


class TestRenewalFailedError:
    def test_carries_http_status(self):
        error = RenewalFailedError("Login rejected", destination="trading-api", status=401)

        assert isinstance(error, ExternalServiceError)
        assert error.error_code == ErrorCode.AUTHENTICATION_FAILED
        assert error.status_code == 502
        assert error.context["http_status"] == 401
        assert error.context["service_name"] == "trading-api"

    def test_status_optional(self):
        error = RenewalFailedError("No response", destination="trading-api")
        assert "http_status" not in error.context


class TestStationResolutionErrors:
    def test_trading_point_not_found(self):
        error = TradingPointNotFoundError("tp-404")

        assert isinstance(error, StationResolutionError)
        assert error.status_code == 404
        assert error.context["trading_point_id"] == "tp-404"

    def test_network_not_found(self):
        error = NetworkNotFoundError("Network not found: 15", network_external_id="15")

        assert isinstance(error, StationResolutionError)
        assert error.context["network_external_id"] == "15"

    def test_external_id_missing_names_field(self):
        error = ExternalIdMissingError("station_id", "tp-1")

        assert error.field == "station_id"
        assert error.status_code == 422
        assert error.error_code == ErrorCode.MISSING_REQUIRED


class TestSyncAlreadyRunningError:
    def test_defaults(self):
        error = SyncAlreadyRunningError()

        assert error.status_code == 409
        assert error.error_code == ErrorCode.INVALID_STATE_TRANSITION
        assert error.message == "Synchronization is already running"


class TestFactories:
    def test_not_found(self):
        error = not_found("Operation", operation_id="op-1")

        assert error.status_code == 404
        assert error.message == "Operation not found: operation_id=op-1"

    def test_is_duplicate_key_error(self):
        sqlite_error = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: operations.trading_point_id")
        )
        postgres_error = IntegrityError(
            "INSERT", {}, Exception('duplicate key value violates unique constraint "uq"')
        )
        not_null_error = IntegrityError(
            "INSERT", {}, Exception("NOT NULL constraint failed: operations.status")
        )

        assert is_duplicate_key_error(sqlite_error)
        assert is_duplicate_key_error(postgres_error)
        assert not is_duplicate_key_error(not_null_error)


class TestCorrelationId:
    def test_set_get_clear(self):
        assert get_correlation_id() is None

        set_correlation_id("abc")
        assert get_correlation_id() == "abc"

        clear_correlation_id()
        assert get_correlation_id() is None
