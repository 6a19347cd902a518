"""Stats service: cache lookup, store walks, aggregation, fan-out.

Every read path follows the same shape: look the result up in the
EphemeralCache (unless a refresh is forced), otherwise walk the store,
reduce the records with the pure functions in ``aggregation``, and cache
the result.

Independent sub-queries (one per ad or per device) run concurrently. A
branch that fails is logged and turned into a zeroed result carrying an
``error`` string; its siblings and the overall request still succeed.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from . import aggregation, schema
from .cache import CacheStats, EphemeralCache
from .config import Settings
from .exceptions import InvalidRequest
from .models import (
    AdStats,
    AggregateSummary,
    DataLabel,
    DayOfWeekBucket,
    DeviceComparison,
    DeviceSummary,
    HourlyBucket,
    LeaderboardEntry,
    PlayRecord,
    QueryPage,
    QueryRequest,
    Screenshot,
    SortCondition,
    StoredObject,
    TimeBucket,
    WeekComparison,
    format_timestamp,
    parse_records,
)
from .pagination import walk_query, walk_scan
from .repository_protocol import StoreProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_QUERY_LIMIT = 100

# Sort keys compare as text, so a stored offset or precision other than
# millisecond "Z" can misplace a play around the bound. The key condition is
# widened by this much and the exact bound applied after parsing.
SINCE_KEY_MARGIN = timedelta(days=1)


class StatsService:
    """
    Aggregated play statistics for the dashboard.

    Owns the result cache. Per-device results use the short
    ``device_cache_ttl``; cross-device results use ``aggregate_cache_ttl``.

    Args:
        store: Store facade (StoreClient or any StoreProtocol implementation)
        settings: Table, bucket, TTL and pagination settings
        cache: Result cache (a fresh one by default)
        now_fn: Wall clock returning an aware UTC datetime
    """

    def __init__(
        self,
        store: StoreProtocol,
        settings: Settings | None = None,
        cache: EphemeralCache | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.cache = cache or EphemeralCache()
        self._now_fn = now_fn or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        """Current time (aware, UTC)."""
        return self._now_fn()

    # -------------------------------------------------------------------------
    # Devices and assets
    # -------------------------------------------------------------------------

    async def list_devices(self) -> list[str]:
        """Devices with a top-level prefix in the media bucket, reserved ones excluded."""
        prefixes = await self.store.list_prefixes(
            self.settings.media_bucket, delimiter=schema.PREFIX_DELIMITER
        )
        reserved = set(self.settings.reserved_prefixes)
        return sorted(p for p in prefixes if p not in reserved)

    async def list_device_ads(self, device_id: str) -> list[str]:
        """Ad filenames (``.mp4``) stored under a device's prefix."""
        objects = await self.store.list_objects(
            self.settings.media_bucket, schema.device_prefix(device_id)
        )
        return sorted(
            {schema.object_basename(obj.key) for obj in objects if schema.is_ad_key(obj.key)}
        )

    # -------------------------------------------------------------------------
    # Record walks
    # -------------------------------------------------------------------------

    async def device_records(
        self,
        device_id: str,
        since: datetime | None = None,
    ) -> list[PlayRecord]:
        """Every play of a device, oldest first, optionally from ``since`` on."""
        sort_condition = None
        if since is not None:
            sort_condition = SortCondition.gte(
                schema.ATTR_TIMESTAMP, format_timestamp(since - SINCE_KEY_MARGIN)
            )
        request = QueryRequest(
            table=self.settings.plays_table,
            index_name=self.settings.device_index,
            partition_key=schema.ATTR_DEVICE_ID,
            partition_value=device_id,
            sort_condition=sort_condition,
        )
        items = await walk_query(self.store, request, max_pages=self.settings.max_pages)
        records = parse_records(items)
        if since is not None:
            records = [r for r in records if r.timestamp >= since]
        return records

    async def ad_records(self, ad_filename: str, device_id: str | None = None) -> list[PlayRecord]:
        """Every play of an ad, optionally restricted to one device."""
        request = QueryRequest(
            table=self.settings.plays_table,
            index_name=self.settings.ad_index,
            partition_key=schema.ATTR_AD_FILENAME,
            partition_value=ad_filename,
            filters={schema.ATTR_DEVICE_ID: device_id} if device_id else {},
        )
        items = await walk_query(self.store, request, max_pages=self.settings.max_pages)
        return parse_records(items)

    async def latest_device_record(self, device_id: str) -> PlayRecord | None:
        """The most recent play of a device, from a single descending page."""
        page = await self.store.query(
            QueryRequest(
                table=self.settings.plays_table,
                index_name=self.settings.device_index,
                partition_key=schema.ATTR_DEVICE_ID,
                partition_value=device_id,
                limit=1,
                scan_forward=False,
            )
        )
        records = parse_records(page.items)
        return records[0] if records else None

    async def _fan_out(
        self,
        keys: Iterable[str],
        fetch: Callable[[str], Awaitable[T]],
    ) -> tuple[dict[str, T], dict[str, str]]:
        """
        Run ``fetch`` for every key concurrently and split results from failures.

        Returns:
            Tuple of (results by key, error messages by key)
        """
        keys = list(keys)
        outcomes = await asyncio.gather(*(fetch(key) for key in keys), return_exceptions=True)

        results: dict[str, T] = {}
        errors: dict[str, str] = {}
        for key, outcome in zip(keys, outcomes, strict=True):
            if isinstance(outcome, Exception):
                logger.warning("Sub-query for %s failed: %s", key, outcome)
                errors[key] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[key] = outcome
        return results, errors

    async def all_device_records(
        self,
        since: datetime | None = None,
    ) -> tuple[dict[str, list[PlayRecord]], dict[str, str]]:
        """Records of every device, with per-device errors for failed walks."""
        devices = await self.list_devices()
        return await self._fan_out(devices, lambda d: self.device_records(d, since))

    # -------------------------------------------------------------------------
    # Per-device stats
    # -------------------------------------------------------------------------

    async def device_summary(self, device_id: str, force_refresh: bool = False) -> DeviceSummary:
        """Plays in the last hour and day, plus the latest play."""

        async def fetch() -> DeviceSummary:
            now = self.now()
            records = await self.device_records(device_id, since=now - aggregation.DAY)
            summary = aggregation.summarize(records, now)
            if summary.most_recent is None:
                summary.most_recent = await self.latest_device_record(device_id)
            return summary

        return await self.cache.get_or_fetch(
            f"device-summary:{device_id}",
            self.settings.device_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    async def device_timeseries(
        self,
        device_id: str,
        range_name: str | None = None,
        granularity: str | None = None,
        force_refresh: bool = False,
    ) -> tuple[list[PlayRecord], list[TimeBucket] | None]:
        """
        Plays of a device in time order, optionally bucketed.

        Args:
            device_id: Device to read
            range_name: "1h", "1d", "1w", "1month" or "total"; limits the items
            granularity: Bucket width; when given, buckets are returned too
            force_refresh: Bypass the cached record list

        Returns:
            Tuple of (records, buckets or None)
        """

        async def fetch() -> list[PlayRecord]:
            records = await self.device_records(device_id)
            return sorted(records, key=lambda r: r.timestamp)

        records: list[PlayRecord] = await self.cache.get_or_fetch(
            f"device-timeseries:{device_id}",
            self.settings.device_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )
        if range_name is None and granularity is None:
            return records, None

        now = self.now()
        start = aggregation.resolve_range(range_name or "1w", now, records)
        in_range = [r for r in records if start <= r.timestamp <= now]
        buckets = None
        if granularity is not None:
            buckets = aggregation.time_buckets(in_range, start, now, granularity)
        return in_range, buckets

    async def device_ad_stats(self, device_id: str, force_refresh: bool = False) -> list[AdStats]:
        """Totals for each ad stored on a device, one sub-query per ad."""

        async def one(ad_filename: str) -> AdStats:
            records = await self.ad_records(ad_filename, device_id)
            return aggregation.per_ad_aggregate(records, [ad_filename])[0]

        async def fetch() -> list[AdStats]:
            ads = await self.list_device_ads(device_id)
            results, errors = await self._fan_out(ads, one)
            return [results.get(ad) or AdStats(ad_filename=ad, error=errors[ad]) for ad in ads]

        return await self.cache.get_or_fetch(
            f"device-ads:{device_id}",
            self.settings.device_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    # -------------------------------------------------------------------------
    # Cross-device stats
    # -------------------------------------------------------------------------

    async def aggregate_summary(self, force_refresh: bool = False) -> AggregateSummary:
        """Fleet-wide rollup. Devices whose walk failed are listed in ``errors``."""

        async def fetch() -> AggregateSummary:
            per_device, errors = await self.all_device_records()
            summary = aggregation.aggregate_summary(per_device, self.now())
            summary.errors = errors
            return summary

        return await self.cache.get_or_fetch(
            "aggregate-summary",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    async def hourly_patterns(
        self,
        include_day_of_week: bool = False,
        force_refresh: bool = False,
    ) -> tuple[list[HourlyBucket], dict[str, str]]:
        """
        Plays by hour of day (and weekday) across every device.

        Returns:
            The buckets, and the error of each device whose walk failed
        """

        async def fetch() -> tuple[list[HourlyBucket], dict[str, str]]:
            per_device, errors = await self.all_device_records()
            records = [r for plays in per_device.values() for r in plays]
            return aggregation.hourly_pattern(records, include_day_of_week), errors

        return await self.cache.get_or_fetch(
            f"hourly-patterns:{'dow' if include_day_of_week else 'hour'}",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    async def day_of_week(
        self, force_refresh: bool = False
    ) -> tuple[list[DayOfWeekBucket], dict[str, str]]:
        """Plays by weekday across every device, with per-device walk errors."""

        async def fetch() -> tuple[list[DayOfWeekBucket], dict[str, str]]:
            per_device, errors = await self.all_device_records()
            records = [r for plays in per_device.values() for r in plays]
            return aggregation.day_of_week_pattern(records), errors

        return await self.cache.get_or_fetch(
            "day-of-week",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    async def week_comparison(self, force_refresh: bool = False) -> WeekComparison:
        """This week against last week across every device."""

        async def fetch() -> WeekComparison:
            now = self.now()
            per_device, errors = await self.all_device_records(since=now - 2 * aggregation.WEEK)
            records = [r for plays in per_device.values() for r in plays]
            comparison = aggregation.week_comparison(records, now)
            comparison.errors = errors
            return comparison

        return await self.cache.get_or_fetch(
            "week-comparison",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    async def ads_leaderboard(
        self,
        limit: int | None = 10,
        sort_by: str = "plays",
        force_refresh: bool = False,
    ) -> tuple[list[LeaderboardEntry], int, dict[str, str]]:
        """
        Ads ranked across every device.

        The full ranking is cached per sort field; ``limit`` is applied on read.

        Returns:
            The ranked entries, the number of distinct ads, and the error
            of each device whose walk failed

        Raises:
            InvalidRequest: If ``sort_by`` is not "plays", "duration" or "frequency"
        """
        if sort_by not in aggregation.SORT_KEYS:
            raise InvalidRequest(
                f"Invalid sortBy '{sort_by}': expected one of {', '.join(aggregation.SORT_KEYS)}"
            )

        async def fetch() -> tuple[list[LeaderboardEntry], int, dict[str, str]]:
            per_device, errors = await self.all_device_records()
            records = [r for plays in per_device.values() for r in plays]
            entries, total = aggregation.leaderboard(records, sort_by)
            return entries, total, errors

        entries, total, errors = await self.cache.get_or_fetch(
            f"leaderboard:{sort_by}",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )
        if limit is not None:
            entries = entries[: max(0, limit)]
        return entries, total, errors

    async def device_comparison(self, force_refresh: bool = False) -> list[DeviceComparison]:
        """Per-device totals; failed devices appear zeroed with an error."""

        async def fetch() -> list[DeviceComparison]:
            per_device, errors = await self.all_device_records()
            results = aggregation.device_comparison(per_device)
            results.extend(
                DeviceComparison(device_id=device_id, error=message)
                for device_id, message in errors.items()
            )
            return sorted(results, key=lambda d: d.device_id)

        return await self.cache.get_or_fetch(
            "device-comparison",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    # -------------------------------------------------------------------------
    # Screenshots
    # -------------------------------------------------------------------------

    async def latest_screenshot(self, device_id: str) -> Screenshot:
        """Presigned URL for the newest screenshot of a device, if any."""
        objects = await self.store.list_objects(
            self.settings.media_bucket, schema.screenshot_prefix(device_id)
        )
        latest: StoredObject | None = None
        for obj in objects:
            if not schema.is_screenshot_key(obj.key):
                continue
            if latest is None or _modified(obj) > _modified(latest):
                latest = obj
        if latest is None:
            return Screenshot(device_id=device_id)

        url = await self.store.presigned_get_url(
            self.settings.media_bucket, latest.key, self.settings.presigned_url_ttl
        )
        return Screenshot(
            device_id=device_id,
            url=url,
            key=latest.key,
            last_modified=latest.last_modified,
        )

    async def screenshots(self, force_refresh: bool = False) -> list[Screenshot]:
        """Latest screenshot of every device; failed lookups carry an error."""

        async def fetch() -> list[Screenshot]:
            devices = await self.list_devices()
            results, errors = await self._fan_out(devices, self.latest_screenshot)
            return [
                results.get(device_id) or Screenshot(device_id=device_id, error=errors[device_id])
                for device_id in devices
            ]

        return await self.cache.get_or_fetch(
            "screenshots",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    # -------------------------------------------------------------------------
    # Data labels
    # -------------------------------------------------------------------------

    async def label_channels(self, force_refresh: bool = False) -> list[str]:
        """Distinct channels present in the labels table."""

        async def fetch() -> list[str]:
            items = await walk_scan(
                self.store,
                self.settings.labels_table,
                projection=[schema.ATTR_CHANNEL],
                max_pages=self.settings.max_pages,
            )
            channels = {item.get(schema.ATTR_CHANNEL) for item in items}
            return sorted(str(channel) for channel in channels if channel)

        return await self.cache.get_or_fetch(
            "label-channels",
            self.settings.aggregate_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )

    async def data_labels(
        self,
        channel: str | None = None,
        exclude_test: bool = True,
        force_refresh: bool = False,
    ) -> list[DataLabel]:
        """Labels for one channel (or all), oldest first, test labels optionally dropped."""

        async def fetch() -> list[DataLabel]:
            if channel:
                request = QueryRequest(
                    table=self.settings.labels_table,
                    index_name=self.settings.channel_index,
                    partition_key=schema.ATTR_CHANNEL,
                    partition_value=channel,
                )
                items = await walk_query(self.store, request, max_pages=self.settings.max_pages)
            else:
                items = await walk_scan(
                    self.store, self.settings.labels_table, max_pages=self.settings.max_pages
                )
            return sorted(_parse_labels(items), key=lambda label: label.start_time)

        labels: list[DataLabel] = await self.cache.get_or_fetch(
            f"data-labels:{channel or '*'}",
            self.settings.device_cache_ttl,
            fetch,
            force_refresh=force_refresh,
        )
        if exclude_test:
            return [label for label in labels if not label.is_test]
        return labels

    # -------------------------------------------------------------------------
    # Passthrough
    # -------------------------------------------------------------------------

    async def query_table(
        self,
        table: str | None,
        limit: int | None = DEFAULT_QUERY_LIMIT,
        partition_key: str | None = None,
        partition_value: Any = None,
        sort_key: str | None = None,
        sort_value: Any = None,
        sort_value_start: Any = None,
        sort_value_end: Any = None,
        index_name: str | None = None,
    ) -> QueryPage:
        """
        One page of a key query, or of a scan when no partition key is given.

        Raises:
            InvalidRequest: If ``table`` is missing
        """
        if not table:
            raise InvalidRequest("Table name is required")

        if partition_key and partition_value is not None:
            request = QueryRequest(
                table=table,
                index_name=index_name,
                partition_key=partition_key,
                partition_value=partition_value,
                sort_condition=SortCondition.from_values(
                    sort_key, sort_value, sort_value_start, sort_value_end
                ),
                limit=limit,
            )
            return await self.store.query(request)

        logger.info("Scanning %s (limit=%s): no partition key given", table, limit)
        return await self.store.scan(table, limit=limit)

    async def list_tables(self) -> list[str]:
        """Table names visible to the configured credentials."""
        return await self.store.list_tables()

    def cache_stats(self) -> CacheStats:
        """Hit/miss counters of the result cache."""
        return self.cache.get_stats()


def _modified(obj: StoredObject) -> datetime:
    return obj.last_modified or datetime.min.replace(tzinfo=UTC)


def _parse_labels(items: list[dict[str, Any]]) -> list[DataLabel]:
    labels = []
    for item in items:
        try:
            labels.append(DataLabel.from_item(item))
        except ValueError as e:
            logger.debug("Skipping data label %s: %s", item.get(schema.ATTR_LABEL_ID), e)
    return labels
