"""Response assembly: result dataclasses to the dashboard's JSON shapes.

Field renaming, timestamp rendering and two-decimal rounding only.
"""

import base64
from typing import Any

from .cache import CacheStats
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
    Screenshot,
    TimeBucket,
    WeekComparison,
    WeekStats,
    format_timestamp,
)


def round2(value: float) -> float:
    """Round for presentation."""
    return round(value, 2)


def _with_error(body: dict[str, Any], error: str | None) -> dict[str, Any]:
    if error:
        body["error"] = error
    return body


def _with_errors(body: dict[str, Any], errors: dict[str, str] | None) -> dict[str, Any]:
    if errors:
        body["errors"] = dict(errors)
    return body


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


def devices_response(devices: list[str]) -> dict[str, Any]:
    return {"devices": devices}


def device_ads_list_response(device_id: str, ads: list[str]) -> dict[str, Any]:
    return {"deviceId": device_id, "ads": ads}


def device_summary_response(device_id: str, summary: DeviceSummary) -> dict[str, Any]:
    latest = summary.most_recent
    return {
        "deviceId": device_id,
        "plays24hr": summary.plays_24h,
        "plays1hr": summary.plays_1h,
        "lastPlayTime": format_timestamp(latest.timestamp) if latest else None,
        "lastPlayData": latest.to_item() if latest else None,
    }


def timeseries_item(record: PlayRecord) -> dict[str, Any]:
    return {
        "timestamp": format_timestamp(record.timestamp),
        "ad_filename": record.ad_filename,
        "play_duration": record.play_duration,
        "play_id": record.play_id,
    }


def time_bucket(bucket: TimeBucket) -> dict[str, Any]:
    return {
        "timestamp": format_timestamp(bucket.start),
        "count": bucket.count,
        "duration": round2(bucket.duration),
        "ads": dict(bucket.ads),
    }


def timeseries_response(
    device_id: str,
    records: list[PlayRecord],
    buckets: list[TimeBucket] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "deviceId": device_id,
        "items": [timeseries_item(r) for r in records],
        "count": len(records),
    }
    if buckets is not None:
        body["buckets"] = [time_bucket(b) for b in buckets]
    return body


def ad_stats_item(stats: AdStats) -> dict[str, Any]:
    return _with_error(
        {
            "adFilename": stats.ad_filename,
            "totalPlays": stats.total_plays,
            "totalDuration": round2(stats.total_duration),
            "averageDuration": round2(stats.average_duration),
            "lastPlayed": format_timestamp(stats.last_played),
        },
        stats.error,
    )


def device_ads_response(device_id: str, stats: list[AdStats]) -> dict[str, Any]:
    return {"deviceId": device_id, "ads": [ad_stats_item(s) for s in stats]}


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def aggregate_summary_response(summary: AggregateSummary) -> dict[str, Any]:
    latest = summary.most_recent
    body: dict[str, Any] = {
        "totalPlays": summary.total_plays,
        "totalPlays1hr": summary.plays_1h,
        "totalPlays24hr": summary.plays_24h,
        "totalPlays7d": summary.plays_7d,
        "totalPlays30d": summary.plays_30d,
        "uniqueAds": summary.unique_ads,
        "totalDuration": round2(summary.total_duration),
        "activeDevices": summary.active_devices,
        "avgPlaysPerDevice": round2(summary.avg_plays_per_device),
        "lastPlayTime": format_timestamp(latest.timestamp) if latest else None,
    }
    return _with_errors(body, summary.errors)


def hourly_patterns_response(
    buckets: list[HourlyBucket],
    errors: dict[str, str] | None = None,
) -> dict[str, Any]:
    patterns = []
    for bucket in buckets:
        item: dict[str, Any] = {"hour": bucket.hour}
        if bucket.day_of_week is not None:
            item["dayOfWeek"] = bucket.day_of_week
        item["plays"] = bucket.plays
        item["duration"] = round2(bucket.duration)
        patterns.append(item)
    return _with_errors({"patterns": patterns}, errors)


def day_of_week_response(
    buckets: list[DayOfWeekBucket],
    errors: dict[str, str] | None = None,
) -> dict[str, Any]:
    patterns = [
        {
            "dayOfWeek": b.day_of_week,
            "dayName": b.day_name,
            "plays": b.plays,
            "duration": round2(b.duration),
        }
        for b in buckets
    ]
    return _with_errors({"patterns": patterns}, errors)


def week_stats(stats: WeekStats) -> dict[str, Any]:
    return {
        "plays": stats.plays,
        "duration": round2(stats.duration),
        "uniqueAds": stats.unique_ads,
    }


def week_comparison_response(comparison: WeekComparison) -> dict[str, Any]:
    return _with_errors(
        {
            "currentWeek": week_stats(comparison.current_week),
            "previousWeek": week_stats(comparison.previous_week),
            "change": week_stats(comparison.change),
        },
        comparison.errors,
    )


def leaderboard_item(entry: LeaderboardEntry) -> dict[str, Any]:
    return {
        "adFilename": entry.ad_filename,
        "totalPlays": entry.total_plays,
        "totalDuration": round2(entry.total_duration),
        "averageDuration": round2(entry.average_duration),
        "frequency": round2(entry.frequency),
        "deviceCount": entry.device_count,
        "lastPlayed": format_timestamp(entry.last_played),
    }


def leaderboard_response(
    entries: list[LeaderboardEntry],
    total: int,
    errors: dict[str, str] | None = None,
) -> dict[str, Any]:
    return _with_errors({"ads": [leaderboard_item(e) for e in entries], "total": total}, errors)


def device_comparison_response(devices: list[DeviceComparison]) -> dict[str, Any]:
    return {
        "devices": [
            _with_error(
                {
                    "deviceId": d.device_id,
                    "totalPlays": d.total_plays,
                    "avgPlaysPerDay": round2(d.avg_plays_per_day),
                    "totalDuration": round2(d.total_duration),
                },
                d.error,
            )
            for d in devices
        ]
    }


# ---------------------------------------------------------------------------
# Storage, labels and passthrough
# ---------------------------------------------------------------------------


def screenshots_response(screenshots: list[Screenshot]) -> dict[str, Any]:
    return {
        "screenshots": [
            _with_error(
                {
                    "deviceId": s.device_id,
                    "screenshotUrl": s.url,
                    "screenshotKey": s.key,
                    "lastModified": format_timestamp(s.last_modified),
                },
                s.error,
            )
            for s in screenshots
        ]
    }


def data_label_item(label: DataLabel) -> dict[str, Any]:
    return {
        "id": label.id,
        "channel": label.channel,
        "startTime": format_timestamp(label.start_time),
        "stopTime": format_timestamp(label.stop_time),
        "duration": label.duration,
        "userName": label.user_name,
        "is_test": label.is_test,
    }


def data_labels_response(labels: list[DataLabel]) -> dict[str, Any]:
    return {"items": [data_label_item(label) for label in labels], "count": len(labels)}


def channels_response(channels: list[str]) -> dict[str, Any]:
    return {"channels": channels}


def json_value(value: Any) -> Any:
    """Make a raw item value JSON-safe: binary as base64 text, sets as sorted lists."""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, dict):
        return {k: json_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [json_value(v) for v in value]
    if isinstance(value, set | frozenset):
        return sorted(json_value(v) for v in value)
    return value


def query_response(page: QueryPage) -> dict[str, Any]:
    return {
        "items": [json_value(item) for item in page.items],
        "count": page.count,
        "scannedCount": page.scanned_count,
    }


def tables_response(tables: list[str]) -> dict[str, Any]:
    return {"tables": tables}


def cache_stats_response(stats: CacheStats) -> dict[str, Any]:
    return stats.as_dict()
