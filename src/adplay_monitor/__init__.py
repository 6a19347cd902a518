"""
adplay-monitor: Ad-play telemetry dashboard backend.

Reads play records from DynamoDB and media from S3, aggregates them into
summaries, time series and leaderboards, and serves them over HTTP with a
short-lived in-process cache.

Example:
    from adplay_monitor import Settings, StatsService, StoreClient

    settings = Settings()
    async with StoreClient(region=settings.aws_region) as store:
        service = StatsService(store, settings)
        summary = await service.device_summary("screen-01")
        print(summary.plays_24h, summary.plays_1h)
"""

from .cache import CacheStats, EphemeralCache
from .config import Settings, get_settings
from .exceptions import (
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
    SortOperator,
    StoredObject,
    TimeBucket,
    WeekComparison,
    WeekStats,
)
from .pagination import walk_query, walk_scan
from .repository import StoreClient
from .repository_protocol import StoreProtocol
from .service import StatsService
from .version import __version__

__all__ = [
    # Version
    "__version__",
    # Main classes
    "StatsService",
    "StoreClient",
    "StoreProtocol",
    "EphemeralCache",
    "CacheStats",
    "Settings",
    "get_settings",
    # Pagination
    "walk_query",
    "walk_scan",
    # Models
    "PlayRecord",
    "DataLabel",
    "QueryRequest",
    "QueryPage",
    "SortCondition",
    "SortOperator",
    "StoredObject",
    "DeviceSummary",
    "AdStats",
    "HourlyBucket",
    "DayOfWeekBucket",
    "WeekStats",
    "WeekComparison",
    "LeaderboardEntry",
    "DeviceComparison",
    "AggregateSummary",
    "TimeBucket",
    "Screenshot",
    # Exceptions - Base
    "AdPlayMonitorError",
    # Exceptions - Request
    "InvalidRequest",
    "InvalidQuery",
    # Exceptions - Upstream
    "UpstreamError",
    "StoreUnavailable",
    "UpstreamTimeout",
    # Exceptions - Pagination
    "PaginationError",
    "PaginationOverrun",
    "PaginationCancelled",
]
