"""Pure reductions over play records.

Nothing here performs I/O. Every function takes already-fetched records and,
where windows matter, an explicit ``now`` so results are reproducible.
All calendar bucketing is done in UTC.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime, timedelta
from operator import attrgetter

from .exceptions import InvalidRequest
from .models import (
    AdStats,
    AggregateSummary,
    DayOfWeekBucket,
    DeviceComparison,
    DeviceSummary,
    HourlyBucket,
    LeaderboardEntry,
    PlayRecord,
    TimeBucket,
    WeekComparison,
    WeekStats,
)

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
WEEK = timedelta(days=7)
MONTH = timedelta(days=30)

# Index 0 is Sunday
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

SORT_KEYS: dict[str, Callable[[LeaderboardEntry], float]] = {
    "plays": attrgetter("total_plays"),
    "duration": attrgetter("total_duration"),
    "frequency": attrgetter("frequency"),
}

RANGES: dict[str, timedelta | None] = {
    "1h": HOUR,
    "1d": DAY,
    "1w": WEEK,
    "1month": MONTH,
    "total": None,  # back to the earliest record
}

FIXED_GRANULARITIES: dict[str, timedelta] = {
    "minute": timedelta(minutes=1),
    "hour": HOUR,
    "day": DAY,
    "week": WEEK,
}

# Fractions of the selected range
RELATIVE_GRANULARITIES: dict[str, float] = {
    "1%": 0.01,
    "5%": 0.05,
    "10%": 0.10,
}

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def weekday_index(ts: datetime) -> int:
    """UTC day of week with Sunday as 0."""
    return (ts.astimezone(UTC).weekday() + 1) % 7


def days_between(first: datetime, last: datetime) -> float:
    """Fractional days from ``first`` to ``last``, never less than 1."""
    return max(1.0, (last - first).total_seconds() / DAY.total_seconds())


def latest_record(records: Iterable[PlayRecord]) -> PlayRecord | None:
    """
    The record with the greatest timestamp.

    Ties go to the record seen first, so the result follows query order.
    """
    latest: PlayRecord | None = None
    for record in records:
        if latest is None or record.timestamp > latest.timestamp:
            latest = record
    return latest


def _count_since(records: Iterable[PlayRecord], since: datetime) -> int:
    return sum(1 for r in records if r.timestamp >= since)


def _total_duration(records: Iterable[PlayRecord]) -> float:
    return sum((r.play_duration for r in records), 0.0)


# ---------------------------------------------------------------------------
# Per-device
# ---------------------------------------------------------------------------


def summarize(records: list[PlayRecord], now: datetime) -> DeviceSummary:
    """Count plays overall and within the last hour and day."""
    return DeviceSummary(
        count=len(records),
        plays_1h=_count_since(records, now - HOUR),
        plays_24h=_count_since(records, now - DAY),
        most_recent=latest_record(records),
    )


def ad_stats(ad_filename: str, records: list[PlayRecord]) -> AdStats:
    """Totals for the records of a single ad."""
    total_plays = len(records)
    total_duration = _total_duration(records)
    last = latest_record(records)
    return AdStats(
        ad_filename=ad_filename,
        total_plays=total_plays,
        total_duration=total_duration,
        average_duration=total_duration / total_plays if total_plays > 0 else 0.0,
        last_played=last.timestamp if last else None,
    )


def per_ad_aggregate(records: list[PlayRecord], ad_names: Iterable[str]) -> list[AdStats]:
    """
    Totals per known ad, in the order the names were given.

    Records for ads not in ``ad_names`` are dropped; ads without records
    still appear with zero totals.
    """
    grouped: dict[str, list[PlayRecord]] = {name: [] for name in ad_names}
    for record in records:
        bucket = grouped.get(record.ad_filename)
        if bucket is not None:
            bucket.append(record)
    return [ad_stats(name, matched) for name, matched in grouped.items()]


# ---------------------------------------------------------------------------
# Calendar patterns
# ---------------------------------------------------------------------------


def hourly_pattern(records: list[PlayRecord], include_day_of_week: bool) -> list[HourlyBucket]:
    """
    Plays per UTC hour of day, zero-filled.

    Without weekdays: 24 buckets ordered by hour. With weekdays: 168 buckets
    ordered by (day of week, hour), day 0 being Sunday.
    """
    if include_day_of_week:
        buckets = {
            (day, hour): HourlyBucket(hour=hour, day_of_week=day)
            for day in range(7)
            for hour in range(24)
        }
        for record in records:
            ts = record.timestamp.astimezone(UTC)
            bucket = buckets[(weekday_index(ts), ts.hour)]
            bucket.plays += 1
            bucket.duration += record.play_duration
        return list(buckets.values())

    hourly = [HourlyBucket(hour=hour) for hour in range(24)]
    for record in records:
        bucket = hourly[record.timestamp.astimezone(UTC).hour]
        bucket.plays += 1
        bucket.duration += record.play_duration
    return hourly


def day_of_week_pattern(records: list[PlayRecord]) -> list[DayOfWeekBucket]:
    """Plays per UTC weekday, zero-filled, Sunday first."""
    days = [DayOfWeekBucket(day_of_week=i, day_name=name) for i, name in enumerate(DAY_NAMES)]
    for record in records:
        bucket = days[weekday_index(record.timestamp)]
        bucket.plays += 1
        bucket.duration += record.play_duration
    return days


# ---------------------------------------------------------------------------
# Week over week
# ---------------------------------------------------------------------------


def week_stats(records: list[PlayRecord]) -> WeekStats:
    """Plays, duration and distinct ads of a record set."""
    return WeekStats(
        plays=len(records),
        duration=_total_duration(records),
        unique_ads=len({r.ad_filename for r in records if r.ad_filename}),
    )


def week_comparison(records: list[PlayRecord], now: datetime) -> WeekComparison:
    """
    Compare the last seven days with the seven days before.

    Current week is ``now - 7d <= ts <= now``; previous week is
    ``now - 14d <= ts < now - 7d``. A record exactly at ``now - 7d`` is
    counted once, in the current week.
    """
    one_week_ago = now - WEEK
    two_weeks_ago = now - 2 * WEEK
    current = [r for r in records if one_week_ago <= r.timestamp <= now]
    previous = [r for r in records if two_weeks_ago <= r.timestamp < one_week_ago]

    current_stats = week_stats(current)
    previous_stats = week_stats(previous)
    return WeekComparison(
        current_week=current_stats,
        previous_week=previous_stats,
        change=current_stats - previous_stats,
    )


# ---------------------------------------------------------------------------
# Cross-device
# ---------------------------------------------------------------------------


def leaderboard(
    records: list[PlayRecord],
    sort_by: str = "plays",
    limit: int | None = None,
) -> tuple[list[LeaderboardEntry], int]:
    """
    Rank ads across every device.

    Args:
        records: Plays from all devices
        sort_by: "plays", "duration" or "frequency" (descending)
        limit: Keep only the top N entries

    Returns:
        Tuple of (ranked entries, number of ads before truncation)

    Raises:
        InvalidRequest: If ``sort_by`` is not a known field
    """
    sort_key = SORT_KEYS.get(sort_by)
    if sort_key is None:
        raise InvalidRequest(
            f"Invalid sortBy '{sort_by}': expected one of {', '.join(SORT_KEYS)}"
        )

    grouped: dict[str, list[PlayRecord]] = defaultdict(list)
    for record in records:
        if record.ad_filename:
            grouped[record.ad_filename].append(record)

    entries = []
    for ad_filename, plays in grouped.items():
        stats = ad_stats(ad_filename, plays)
        first = min(r.timestamp for r in plays)
        last = max(r.timestamp for r in plays)
        entries.append(
            LeaderboardEntry(
                ad_filename=ad_filename,
                total_plays=stats.total_plays,
                total_duration=stats.total_duration,
                average_duration=stats.average_duration,
                frequency=stats.total_plays / days_between(first, last),
                device_count=len({r.device_id for r in plays if r.device_id}),
                last_played=stats.last_played,
            )
        )

    entries.sort(key=sort_key, reverse=True)
    total = len(entries)
    if limit is not None:
        entries = entries[: max(0, limit)]
    return entries, total


def device_comparison(
    per_device_records: Mapping[str, list[PlayRecord]],
) -> list[DeviceComparison]:
    """Totals and plays-per-day for each device, ordered by device id."""
    results = []
    for device_id in sorted(per_device_records):
        records = per_device_records[device_id]
        avg_per_day = 0.0
        if records:
            first = min(r.timestamp for r in records)
            last = max(r.timestamp for r in records)
            avg_per_day = len(records) / days_between(first, last)
        results.append(
            DeviceComparison(
                device_id=device_id,
                total_plays=len(records),
                avg_plays_per_day=avg_per_day,
                total_duration=_total_duration(records),
            )
        )
    return results


def aggregate_summary(
    per_device_records: Mapping[str, list[PlayRecord]],
    now: datetime,
) -> AggregateSummary:
    """Fleet-wide counts over 1h/24h/7d/30d plus device and ad totals."""
    everything = [r for records in per_device_records.values() for r in records]
    active = sum(1 for records in per_device_records.values() if records)
    total = len(everything)
    return AggregateSummary(
        total_plays=total,
        plays_1h=_count_since(everything, now - HOUR),
        plays_24h=_count_since(everything, now - DAY),
        plays_7d=_count_since(everything, now - WEEK),
        plays_30d=_count_since(everything, now - MONTH),
        unique_ads=len({r.ad_filename for r in everything if r.ad_filename}),
        total_duration=_total_duration(everything),
        active_devices=active,
        avg_plays_per_device=total / active if active else 0.0,
        most_recent=latest_record(everything),
    )


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def resolve_range(range_name: str, now: datetime, records: list[PlayRecord]) -> datetime:
    """
    Start of a named range ending at ``now``.

    "total" starts at the earliest record, or 30 days back when there are none.

    Raises:
        InvalidRequest: If the range name is unknown
    """
    if range_name not in RANGES:
        raise InvalidRequest(f"Invalid range '{range_name}': expected one of {', '.join(RANGES)}")
    span = RANGES[range_name]
    if span is not None:
        return now - span
    if records:
        return min(r.timestamp for r in records)
    return now - MONTH


def bucket_width(granularity: str, start: datetime, end: datetime) -> timedelta:
    """
    Width of one time bucket.

    Relative granularities are a fraction of ``end - start``; an empty or
    inverted range falls back to one hour.

    Raises:
        InvalidRequest: If the granularity is unknown
    """
    if granularity in FIXED_GRANULARITIES:
        return FIXED_GRANULARITIES[granularity]
    if granularity in RELATIVE_GRANULARITIES:
        span = end - start
        if span <= timedelta(0):
            return HOUR
        return max(span * RELATIVE_GRANULARITIES[granularity], timedelta(milliseconds=1))
    valid = [*FIXED_GRANULARITIES, *RELATIVE_GRANULARITIES]
    raise InvalidRequest(f"Invalid granularity '{granularity}': expected one of {', '.join(valid)}")


def time_buckets(
    records: list[PlayRecord],
    start: datetime,
    end: datetime,
    granularity: str,
) -> list[TimeBucket]:
    """
    Group records in ``[start, end]`` into fixed-width buckets.

    Bucket boundaries are aligned to the Unix epoch. Only populated buckets
    are returned, oldest first, each with per-ad play counts.
    """
    width_ms = int(bucket_width(granularity, start, end) / timedelta(milliseconds=1))
    buckets: dict[int, TimeBucket] = {}
    for record in records:
        if not start <= record.timestamp <= end:
            continue
        offset_ms = int((record.timestamp - _EPOCH) / timedelta(milliseconds=1))
        bucket_ms = (offset_ms // width_ms) * width_ms
        bucket = buckets.get(bucket_ms)
        if bucket is None:
            bucket = TimeBucket(start=_EPOCH + timedelta(milliseconds=bucket_ms))
            buckets[bucket_ms] = bucket
        bucket.count += 1
        bucket.duration += record.play_duration
        ad = record.ad_filename or "unknown"
        bucket.ads[ad] = bucket.ads.get(ad, 0) + 1
    return [buckets[key] for key in sorted(buckets)]
