"""FastAPI dependencies for the stats service."""

from fastapi import Request

from ..service import StatsService


def get_service(request: Request) -> StatsService:
    """The StatsService created at startup (or injected by create_app)."""
    service: StatsService = request.app.state.service
    return service
