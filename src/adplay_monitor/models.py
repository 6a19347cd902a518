"""Core models for adplay-monitor."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from . import schema

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are taken to be UTC. A trailing "Z" is accepted.

    Raises:
        ValueError: If the value is missing or not ISO-8601
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_timestamp(value: datetime | None) -> str | None:
    """Render a datetime as ISO-8601 with millisecond precision and a Z suffix."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_float(value: Any) -> float:
    """Coerce a numeric or numeric-string attribute, defaulting to 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if number == number else 0.0  # NaN


@dataclass(frozen=True)
class PlayRecord:
    """
    One ad playback event as written by a device.

    Required fields are typed; every other attribute on the stored item
    is kept verbatim in ``metadata``.

    Attributes:
        play_id: Unique identifier of the play
        device_id: Device that played the ad
        ad_filename: Media file that was played
        timestamp: When the play happened (aware, UTC)
        play_duration: Seconds played (0 when absent)
        status: Optional play status ("completed", "interrupted", ...)
        metadata: All remaining attributes
    """

    play_id: str
    device_id: str
    ad_filename: str
    timestamp: datetime
    play_duration: float = 0.0
    status: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "PlayRecord":
        """
        Build a record from a deserialized store item.

        Raises:
            ValueError: If the item has no parsable timestamp
        """
        known = {
            schema.ATTR_PLAY_ID,
            schema.ATTR_DEVICE_ID,
            schema.ATTR_AD_FILENAME,
            schema.ATTR_TIMESTAMP,
            schema.ATTR_PLAY_DURATION,
            schema.ATTR_PLAY_STATUS,
        }
        metadata = {k: v for k, v in item.items() if k not in known}

        ad_filename = item.get(schema.ATTR_AD_FILENAME)
        nested = item.get(schema.ATTR_METADATA)
        if not ad_filename and isinstance(nested, dict):
            ad_filename = nested.get(schema.ATTR_AD_FILENAME)

        return cls(
            play_id=str(item.get(schema.ATTR_PLAY_ID) or ""),
            device_id=str(item.get(schema.ATTR_DEVICE_ID) or ""),
            ad_filename=str(ad_filename or ""),
            timestamp=parse_timestamp(item.get(schema.ATTR_TIMESTAMP)),
            play_duration=_as_float(item.get(schema.ATTR_PLAY_DURATION)),
            status=item.get(schema.ATTR_PLAY_STATUS),
            metadata=metadata,
        )

    def to_item(self) -> dict[str, Any]:
        """Serialize back to the flat attribute shape the store holds."""
        item: dict[str, Any] = dict(self.metadata)
        item.update(
            {
                schema.ATTR_PLAY_ID: self.play_id,
                schema.ATTR_DEVICE_ID: self.device_id,
                schema.ATTR_AD_FILENAME: self.ad_filename,
                schema.ATTR_TIMESTAMP: format_timestamp(self.timestamp),
                schema.ATTR_PLAY_DURATION: self.play_duration,
            }
        )
        if self.status is not None:
            item[schema.ATTR_PLAY_STATUS] = self.status
        return item


def parse_records(items: list[dict[str, Any]]) -> list[PlayRecord]:
    """Convert store items into play records, skipping items without a timestamp."""
    records: list[PlayRecord] = []
    for item in items:
        try:
            records.append(PlayRecord.from_item(item))
        except ValueError as e:
            logger.debug("Skipping play item %s: %s", item.get(schema.ATTR_PLAY_ID), e)
    return records


@dataclass(frozen=True)
class DataLabel:
    """A labelled span of channel activity recorded by an operator."""

    id: str
    channel: str
    start_time: datetime
    stop_time: datetime | None = None
    duration: float = 0.0
    user_name: str | None = None
    is_test: bool = False

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "DataLabel":
        """
        Build a label from a deserialized store item.

        Raises:
            ValueError: If the item has no parsable start time
        """
        stop = item.get(schema.ATTR_STOP_TIME)
        is_test = item.get(schema.ATTR_IS_TEST)
        return cls(
            id=str(item.get(schema.ATTR_LABEL_ID) or ""),
            channel=str(item.get(schema.ATTR_CHANNEL) or ""),
            start_time=parse_timestamp(item.get(schema.ATTR_START_TIME)),
            stop_time=parse_timestamp(stop) if stop else None,
            duration=_as_float(item.get(schema.ATTR_DURATION)),
            user_name=item.get(schema.ATTR_USER_NAME),
            is_test=is_test is True or is_test == "true",
        )


# ---------------------------------------------------------------------------
# Store query models
# ---------------------------------------------------------------------------


class SortOperator(Enum):
    """Conditions supported on an index sort attribute."""

    EQ = "eq"
    BETWEEN = "between"
    GTE = "gte"
    LTE = "lte"


@dataclass(frozen=True)
class SortCondition:
    """
    Condition on the sort attribute of a key query.

    ``upper`` is only used by BETWEEN.
    """

    attribute: str
    operator: SortOperator
    value: Any
    upper: Any = None

    def __post_init__(self) -> None:
        if not self.attribute:
            raise ValueError("attribute must be non-empty")
        if self.operator is SortOperator.BETWEEN and self.upper is None:
            raise ValueError("BETWEEN requires an upper bound")

    @classmethod
    def eq(cls, attribute: str, value: Any) -> "SortCondition":
        return cls(attribute, SortOperator.EQ, value)

    @classmethod
    def between(cls, attribute: str, lower: Any, upper: Any) -> "SortCondition":
        return cls(attribute, SortOperator.BETWEEN, lower, upper)

    @classmethod
    def gte(cls, attribute: str, value: Any) -> "SortCondition":
        return cls(attribute, SortOperator.GTE, value)

    @classmethod
    def lte(cls, attribute: str, value: Any) -> "SortCondition":
        return cls(attribute, SortOperator.LTE, value)

    @classmethod
    def from_values(
        cls,
        attribute: str | None,
        value: Any = None,
        start: Any = None,
        end: Any = None,
    ) -> "SortCondition | None":
        """
        Pick the condition implied by whichever bounds were supplied.

        An exact value wins over a range; a range with one side open becomes
        an open-ended comparison. Returns None when nothing usable was given.
        """
        if not attribute:
            return None
        if value is not None:
            return cls.eq(attribute, value)
        if start is not None and end is not None:
            return cls.between(attribute, start, end)
        if start is not None:
            return cls.gte(attribute, start)
        if end is not None:
            return cls.lte(attribute, end)
        return None


@dataclass(frozen=True)
class QueryRequest:
    """
    A key query against the table or one of its secondary indexes.

    Attributes:
        table: Table name
        partition_key: Partition attribute name of the table or index
        partition_value: Value to match on the partition attribute
        index_name: Secondary index to query (None for the base table)
        sort_condition: Optional condition on the sort attribute
        limit: Page size (None for the store default)
        exclusive_start_key: Continuation token from a previous page
        scan_forward: Ascending sort-key order when True
        filters: Equality filters on non-key attributes
    """

    table: str
    partition_key: str
    partition_value: Any
    index_name: str | None = None
    sort_condition: SortCondition | None = None
    limit: int | None = None
    exclusive_start_key: dict[str, Any] | None = None
    scan_forward: bool = True
    filters: dict[str, Any] = field(default_factory=dict)

    def with_start_key(self, start_key: dict[str, Any] | None) -> "QueryRequest":
        """Copy of this request resuming after ``start_key``."""
        return QueryRequest(
            table=self.table,
            partition_key=self.partition_key,
            partition_value=self.partition_value,
            index_name=self.index_name,
            sort_condition=self.sort_condition,
            limit=self.limit,
            exclusive_start_key=start_key,
            scan_forward=self.scan_forward,
            filters=self.filters,
        )


@dataclass
class QueryPage:
    """One page of query or scan results."""

    items: list[dict[str, Any]]
    last_evaluated_key: dict[str, Any] | None = None
    count: int = 0
    scanned_count: int = 0

    @property
    def has_more(self) -> bool:
        """True if the store returned a continuation token."""
        return bool(self.last_evaluated_key)


@dataclass(frozen=True)
class StoredObject:
    """An object listed from the media bucket."""

    key: str
    last_modified: datetime | None = None
    size: int = 0


# ---------------------------------------------------------------------------
# Aggregation results
# ---------------------------------------------------------------------------


@dataclass
class DeviceSummary:
    """Play counts for one device over recent windows."""

    count: int
    plays_1h: int
    plays_24h: int
    most_recent: PlayRecord | None = None


@dataclass
class AdStats:
    """Totals for one ad. ``error`` is set when its sub-query failed."""

    ad_filename: str
    total_plays: int = 0
    total_duration: float = 0.0
    average_duration: float = 0.0
    last_played: datetime | None = None
    error: str | None = None


@dataclass
class HourlyBucket:
    """Plays within one UTC hour of the day, optionally for one weekday."""

    hour: int
    plays: int = 0
    duration: float = 0.0
    day_of_week: int | None = None


@dataclass
class DayOfWeekBucket:
    """Plays on one UTC weekday (0 = Sunday)."""

    day_of_week: int
    day_name: str
    plays: int = 0
    duration: float = 0.0


@dataclass
class WeekStats:
    """Totals for a seven-day window, or the delta between two windows."""

    plays: int = 0
    duration: float = 0.0
    unique_ads: int = 0

    def __sub__(self, other: "WeekStats") -> "WeekStats":
        return WeekStats(
            plays=self.plays - other.plays,
            duration=self.duration - other.duration,
            unique_ads=self.unique_ads - other.unique_ads,
        )


@dataclass
class WeekComparison:
    """Current week against the week before it."""

    current_week: WeekStats
    previous_week: WeekStats
    change: WeekStats
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class LeaderboardEntry:
    """Cross-device totals for one ad."""

    ad_filename: str
    total_plays: int
    total_duration: float
    average_duration: float
    frequency: float  # plays per day between first and last play
    device_count: int
    last_played: datetime | None


@dataclass
class DeviceComparison:
    """Totals for one device. ``error`` is set when its sub-query failed."""

    device_id: str
    total_plays: int = 0
    avg_plays_per_day: float = 0.0
    total_duration: float = 0.0
    error: str | None = None


@dataclass
class AggregateSummary:
    """Fleet-wide rollup across every device."""

    total_plays: int = 0
    plays_1h: int = 0
    plays_24h: int = 0
    plays_7d: int = 0
    plays_30d: int = 0
    unique_ads: int = 0
    total_duration: float = 0.0
    active_devices: int = 0
    avg_plays_per_device: float = 0.0
    most_recent: PlayRecord | None = None
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class TimeBucket:
    """Plays falling in one fixed-width time interval."""

    start: datetime
    count: int = 0
    duration: float = 0.0
    ads: dict[str, int] = field(default_factory=dict)


@dataclass
class Screenshot:
    """The most recent screenshot of one device."""

    device_id: str
    url: str | None = None
    key: str | None = None
    last_modified: datetime | None = None
    error: str | None = None
