"""Table, screenshot, data label and cache endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from .. import responses
from ..service import StatsService
from .dependencies import get_service

router = APIRouter()


@router.get("/tables")
async def list_tables(service: StatsService = Depends(get_service)) -> dict[str, Any]:
    """Tables visible to the configured credentials."""
    return responses.tables_response(await service.list_tables())


@router.get("/screenshots")
async def screenshots(
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Presigned URL of each device's latest screenshot."""
    return responses.screenshots_response(await service.screenshots(force_refresh=refresh))


@router.get("/data-labels/channels")
async def label_channels(
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Channels that have data labels."""
    return responses.channels_response(await service.label_channels(force_refresh=refresh))


@router.get("/data-labels")
async def data_labels(
    channel: str | None = None,
    exclude_test: bool = Query(default=True, alias="excludeTest"),
    refresh: bool = False,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Data labels, optionally for one channel."""
    labels = await service.data_labels(
        channel if channel and channel != "all" else None,
        exclude_test=exclude_test,
        force_refresh=refresh,
    )
    return responses.data_labels_response(labels)


@router.get("/cache/stats")
async def cache_stats(service: StatsService = Depends(get_service)) -> dict[str, Any]:
    """Result cache hit/miss counters."""
    return responses.cache_stats_response(service.cache_stats())
