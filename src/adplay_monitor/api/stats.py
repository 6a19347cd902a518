"""Play statistics endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from .. import responses
from ..service import StatsService
from .dependencies import get_service
from .models import QueryStatsRequest

router = APIRouter()


# ---------------------------------------------------------------------------
# Per device
# ---------------------------------------------------------------------------


@router.get("/device/{device_id}/summary")
async def device_summary(
    device_id: str,
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Plays in the last hour and day, and the latest play."""
    summary = await service.device_summary(device_id, force_refresh=refresh)
    return responses.device_summary_response(device_id, summary)


@router.get("/device/{device_id}/timeseries")
async def device_timeseries(
    device_id: str,
    range_name: str | None = Query(default=None, alias="range"),
    granularity: str | None = None,
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Every play of a device in time order, optionally bucketed."""
    records, buckets = await service.device_timeseries(
        device_id,
        range_name=range_name,
        granularity=granularity,
        force_refresh=refresh,
    )
    return responses.timeseries_response(device_id, records, buckets)


@router.get("/device/{device_id}/ads")
async def device_ads(
    device_id: str,
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Per-ad totals for a device."""
    stats = await service.device_ad_stats(device_id, force_refresh=refresh)
    return responses.device_ads_response(device_id, stats)


# ---------------------------------------------------------------------------
# Across devices
# ---------------------------------------------------------------------------


@router.get("/aggregate/summary")
async def aggregate_summary(
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Fleet-wide rollup."""
    return responses.aggregate_summary_response(
        await service.aggregate_summary(force_refresh=refresh)
    )


@router.get("/aggregate/hourly-patterns")
async def hourly_patterns(
    day_of_week: bool = Query(default=False, alias="dayOfWeek"),
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Plays by UTC hour, optionally split by weekday."""
    buckets, errors = await service.hourly_patterns(day_of_week, force_refresh=refresh)
    return responses.hourly_patterns_response(buckets, errors)


@router.get("/aggregate/day-of-week")
async def day_of_week(
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Plays by UTC weekday."""
    buckets, errors = await service.day_of_week(force_refresh=refresh)
    return responses.day_of_week_response(buckets, errors)


@router.get("/aggregate/week-comparison")
async def week_comparison(
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """This week against last week."""
    return responses.week_comparison_response(
        await service.week_comparison(force_refresh=refresh)
    )


@router.get("/ads/leaderboard")
async def ads_leaderboard(
    limit: int = Query(default=10, ge=0),
    sort_by: str = Query(default="plays", alias="sortBy"),
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Ads ranked by plays, duration or frequency."""
    entries, total, errors = await service.ads_leaderboard(limit, sort_by, force_refresh=refresh)
    return responses.leaderboard_response(entries, total, errors)


@router.get("/devices/comparison")
async def devices_comparison(
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Per-device totals side by side."""
    return responses.device_comparison_response(
        await service.device_comparison(force_refresh=refresh)
    )


# ---------------------------------------------------------------------------
# Passthrough
# ---------------------------------------------------------------------------


@router.post("")
async def query_stats(
    request: QueryStatsRequest,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """
    Query a table by partition key, or scan it when no key is given.

    Returns a single page of at most ``limit`` items.
    """
    page = await service.query_table(
        request.table_name,
        limit=request.limit,
        partition_key=request.partition_key,
        partition_value=request.partition_value,
        sort_key=request.sort_key,
        sort_value=request.sort_value,
        sort_value_start=request.sort_value_start,
        sort_value_end=request.sort_value_end,
        index_name=request.index_name,
    )
    return responses.query_response(page)
