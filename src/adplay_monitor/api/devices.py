"""Device and ad asset endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from .. import responses
from ..service import StatsService
from .dependencies import get_service

router = APIRouter()


@router.get("")
async def list_devices(service: StatsService = Depends(get_service)) -> dict[str, Any]:
    """Devices known from the media bucket."""
    return responses.devices_response(await service.list_devices())


@router.get("/{device_id}/ads")
async def list_device_ads(
    device_id: str,
    service: StatsService = Depends(get_service),
) -> dict[str, Any]:
    """Ad files stored for a device."""
    ads = await service.list_device_ads(device_id)
    return responses.device_ads_list_response(device_id, ads)
