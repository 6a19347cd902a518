"""In-memory store and record helpers for service, walker and API tests."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from adplay_monitor.exceptions import UpstreamError
from adplay_monitor.models import (
    QueryPage,
    QueryRequest,
    SortOperator,
    StoredObject,
    format_timestamp,
)

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)


def play_item(
    play_id: str,
    device_id: str = "screen-01",
    ad_filename: str = "promo.mp4",
    at: datetime | None = None,
    duration: float | None = 15.0,
    **extra: Any,
) -> dict[str, Any]:
    """A play item as the store returns it."""
    item: dict[str, Any] = {
        "play_id": play_id,
        "device_id": device_id,
        "ad_filename": ad_filename,
        "timestamp": format_timestamp(at or NOW),
    }
    if duration is not None:
        item["play_duration"] = duration
    item.update(extra)
    return item


def _matches(item: dict[str, Any], request: QueryRequest) -> bool:
    if item.get(request.partition_key) != request.partition_value:
        return False
    for attr, value in request.filters.items():
        if item.get(attr) != value:
            return False
    cond = request.sort_condition
    if cond is None:
        return True
    actual = item.get(cond.attribute)
    if actual is None:
        return False
    if cond.operator is SortOperator.EQ:
        return bool(actual == cond.value)
    if cond.operator is SortOperator.GTE:
        return bool(actual >= cond.value)
    if cond.operator is SortOperator.LTE:
        return bool(actual <= cond.value)
    return bool(cond.value <= actual <= cond.upper)


@dataclass
class InMemoryStore:
    """
    StoreProtocol implementation over plain dicts.

    Query results are paged by ``page_size`` with an ``{"offset": n}``
    continuation token. Partition values listed in ``failing`` raise
    UpstreamError, as do bucket prefixes listed in ``failing_prefixes``.
    """

    tables: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    objects: dict[str, list[StoredObject]] = field(default_factory=dict)
    page_size: int = 100
    failing: set[Any] = field(default_factory=set)
    failing_prefixes: set[str] = field(default_factory=set)
    table_names: list[str] | None = None
    queries: list[QueryRequest] = field(default_factory=list)
    scans: list[str] = field(default_factory=list)
    closed: bool = False

    async def __aenter__(self) -> "InMemoryStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True

    def _page(self, items: list[dict[str, Any]], start_key: dict[str, Any] | None) -> QueryPage:
        offset = start_key["offset"] if start_key else 0
        chunk = items[offset : offset + self.page_size]
        next_offset = offset + len(chunk)
        return QueryPage(
            items=chunk,
            last_evaluated_key={"offset": next_offset} if next_offset < len(items) else None,
            count=len(chunk),
            scanned_count=len(chunk),
        )

    async def query(self, request: QueryRequest) -> QueryPage:
        self.queries.append(request)
        if request.partition_value in self.failing:
            raise UpstreamError(
                f"Throttled reading {request.partition_value}",
                error_code="ProvisionedThroughputExceededException",
            )
        matched = [i for i in self.tables.get(request.table, []) if _matches(i, request)]
        sort_attr = request.sort_condition.attribute if request.sort_condition else "timestamp"
        matched.sort(key=lambda i: str(i.get(sort_attr, "")), reverse=not request.scan_forward)
        if request.limit:
            page = self._page(matched, request.exclusive_start_key)
            page.items = page.items[: request.limit]
            page.count = page.scanned_count = len(page.items)
            return page
        return self._page(matched, request.exclusive_start_key)

    async def scan(
        self,
        table: str,
        limit: int | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
        projection: list[str] | None = None,
    ) -> QueryPage:
        self.scans.append(table)
        items = self.tables.get(table, [])
        if projection:
            items = [{k: v for k, v in i.items() if k in projection} for i in items]
        page = self._page(items, exclusive_start_key)
        if limit:
            page.items = page.items[:limit]
            page.count = page.scanned_count = len(page.items)
        return page

    async def list_tables(self) -> list[str]:
        if self.table_names is not None:
            return list(self.table_names)
        return sorted(self.tables)

    async def list_prefixes(self, bucket: str, prefix: str = "", delimiter: str = "/") -> set[str]:
        names = set()
        for obj in self.objects.get(bucket, []):
            if obj.key.startswith(prefix) and delimiter in obj.key[len(prefix) :]:
                names.add(obj.key[len(prefix) :].split(delimiter, 1)[0])
        return names

    async def list_objects(self, bucket: str, prefix: str) -> list[StoredObject]:
        if prefix in self.failing_prefixes:
            raise UpstreamError("Access Denied", error_code="AccessDenied")
        return sorted(
            (o for o in self.objects.get(bucket, []) if o.key.startswith(prefix)),
            key=lambda o: o.key,
        )

    async def presigned_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        return f"https://{bucket}.s3.example.com/{key}?X-Amz-Expires={ttl_seconds}"


def media_objects(layout: dict[str, list[str]], base: datetime = NOW) -> list[StoredObject]:
    """Objects for ``{device_id: [relative keys]}``, modified one minute apart."""
    objects = []
    for device_id, keys in layout.items():
        for i, key in enumerate(keys):
            objects.append(
                StoredObject(
                    key=f"{device_id}/{key}",
                    last_modified=base - timedelta(minutes=len(keys) - i),
                    size=1024,
                )
            )
    return objects
