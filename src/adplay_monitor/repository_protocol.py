"""Store protocol for telemetry backends.

The StatsService and pagination walker only depend on this protocol, so any
object providing these coroutines (the aioboto3-backed StoreClient, or an
in-memory stub in tests) can drive them.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import QueryPage, QueryRequest, StoredObject


@runtime_checkable
class StoreProtocol(Protocol):
    """
    Protocol for the key-value store and object bucket the monitor reads.

    - **Key-value store**: paged key queries and scans, table listing
    - **Object bucket**: prefix and object listing, presigned GET URLs

    Example:
        class InMemoryStore:
            async def query(self, request: QueryRequest) -> QueryPage:
                ...

        assert isinstance(InMemoryStore(), StoreProtocol)
    """

    # -------------------------------------------------------------------------
    # Key-value store
    # -------------------------------------------------------------------------

    async def query(self, request: "QueryRequest") -> "QueryPage":
        """
        Run one page of a key query.

        Raises:
            InvalidQuery: If table or partition key fields are missing
            UpstreamError: If the store call fails
        """
        ...

    async def scan(
        self,
        table: str,
        limit: int | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
        projection: list[str] | None = None,
    ) -> "QueryPage":
        """Run one page of an unconditioned scan (inspection only)."""
        ...

    async def list_tables(self) -> list[str]:
        """List table names visible to the caller."""
        ...

    # -------------------------------------------------------------------------
    # Object bucket
    # -------------------------------------------------------------------------

    async def list_prefixes(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "/",
    ) -> set[str]:
        """List common prefixes under ``prefix``, without the trailing delimiter."""
        ...

    async def list_objects(self, bucket: str, prefix: str) -> list["StoredObject"]:
        """List every object under ``prefix`` in key order."""
        ...

    async def presigned_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Generate a time-limited GET URL for one object."""
        ...
