"""Tests for exception classes."""

from adplay_monitor.exceptions import (
    AdPlayMonitorError,
    InvalidQuery,
    InvalidRequest,
    PaginationCancelled,
    PaginationError,
    PaginationOverrun,
    StoreUnavailable,
    UpstreamError,
    UpstreamTimeout,
)


class TestInvalidRequest:
    """Tests for request validation errors."""

    def test_status_and_shape(self) -> None:
        exc = InvalidRequest("Table name is required")
        assert exc.status_code == 400
        assert exc.as_dict() == {"error": "Table name is required", "code": "InvalidRequest"}

    def test_invalid_query_names_table(self) -> None:
        exc = InvalidQuery("Partition key and value are required", table_name="plays")
        assert isinstance(exc, InvalidRequest)
        assert exc.status_code == 400
        assert exc.table_name == "plays"
        assert "[table=plays]" in str(exc)
        assert exc.code == "InvalidQuery"


class TestUpstreamError:
    """Tests for store and bucket failures."""

    def test_provider_code_passed_through(self) -> None:
        exc = UpstreamError(
            "Requested resource not found",
            error_code="ResourceNotFoundException",
            operation="Query",
        )
        assert exc.status_code == 500
        assert exc.code == "ResourceNotFoundException"
        assert exc.operation == "Query"
        assert exc.as_dict() == {
            "error": "Requested resource not found",
            "code": "ResourceNotFoundException",
        }

    def test_code_defaults_to_class_name(self) -> None:
        assert UpstreamError("boom").code == "UpstreamError"
        assert StoreUnavailable("no route").code == "StoreUnavailable"

    def test_timeout(self) -> None:
        exc = UpstreamTimeout("Query", 2.5)
        assert isinstance(exc, UpstreamError)
        assert exc.timeout_seconds == 2.5
        assert exc.code == "UpstreamTimeout"
        assert str(exc) == "Query timed out after 2.5s"


class TestPaginationErrors:
    """Tests for pagination failures."""

    def test_overrun(self) -> None:
        exc = PaginationOverrun("plays", 10)
        assert isinstance(exc, PaginationError)
        assert "exceeded 10 pages" in str(exc)

    def test_cancelled(self) -> None:
        exc = PaginationCancelled("plays", 3)
        assert exc.pages == 3
        assert "after 3 pages" in str(exc)

    def test_all_share_base(self) -> None:
        for exc in (
            InvalidRequest("x"),
            UpstreamError("x"),
            PaginationOverrun("t", 1),
        ):
            assert isinstance(exc, AdPlayMonitorError)
