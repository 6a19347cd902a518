"""Exceptions for adplay-monitor."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class AdPlayMonitorError(Exception):
    """
    Base exception for all adplay-monitor errors.

    All exceptions raised by this package inherit from this class,
    allowing callers to catch all monitor-specific errors with a single
    except clause.
    """

    status_code: int = 500

    @property
    def code(self) -> str:
        """Short error kind reported to API clients."""
        return type(self).__name__

    def as_dict(self) -> dict[str, Any]:
        """
        Serialize for JSON API responses.

        Returns a dictionary suitable for an error response body.
        """
        return {"error": str(self), "code": self.code}


# ---------------------------------------------------------------------------
# Request Exceptions
# ---------------------------------------------------------------------------


class InvalidRequest(AdPlayMonitorError):  # noqa: N818
    """Raised when required input is missing or malformed."""

    status_code = 400


class InvalidQuery(InvalidRequest):  # noqa: N818
    """Raised when a store query is missing its required key fields."""

    def __init__(self, message: str, *, table_name: str | None = None) -> None:
        self.table_name = table_name
        if table_name:
            message = f"{message} [table={table_name}]"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Upstream Exceptions
# ---------------------------------------------------------------------------


class UpstreamError(AdPlayMonitorError):
    """
    Raised when a store or bucket call fails.

    The provider's error code and message are passed through unmodified so
    API clients see exactly what DynamoDB or S3 reported.

    Attributes:
        error_code: Provider-supplied error code (e.g. "ResourceNotFoundException")
        operation: The facade operation that failed
        cause: The underlying exception
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        operation: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = error_code
        self.operation = operation
        self.cause = cause
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error_code or type(self).__name__


class StoreUnavailable(UpstreamError):  # noqa: N818
    """Raised on transport or credential failures reaching the store or bucket."""

    pass


class UpstreamTimeout(UpstreamError):  # noqa: N818
    """Raised when a single store or bucket call exceeds its timeout."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{operation} timed out after {timeout_seconds:g}s",
            operation=operation,
        )

    @property
    def code(self) -> str:
        return "UpstreamTimeout"


# ---------------------------------------------------------------------------
# Pagination Exceptions
# ---------------------------------------------------------------------------


class PaginationError(AdPlayMonitorError):
    """Base exception for pagination walker failures."""

    pass


class PaginationOverrun(PaginationError):  # noqa: N818
    """Raised when a paginated read needs more pages than allowed."""

    def __init__(self, table_name: str, max_pages: int) -> None:
        self.table_name = table_name
        self.max_pages = max_pages
        super().__init__(
            f"Pagination over {table_name} exceeded {max_pages} pages; "
            "narrow the query or raise max_pages"
        )


class PaginationCancelled(PaginationError):  # noqa: N818
    """Raised when a paginated read is cancelled between pages."""

    def __init__(self, table_name: str, pages: int) -> None:
        self.table_name = table_name
        self.pages = pages
        super().__init__(f"Pagination over {table_name} cancelled after {pages} pages")
