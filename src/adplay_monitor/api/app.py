"""FastAPI application for the ad-play monitor."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..config import Settings, get_settings
from ..exceptions import AdPlayMonitorError
from ..repository import StoreClient
from ..service import StatsService
from ..version import __version__
from . import devices, stats, storage

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    service: StatsService | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings to use (read from the environment by default)
        service: Pre-built service; when omitted one is created at startup
            around a StoreClient and closed at shutdown
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifespan."""
        if service is not None:
            yield
            return

        store = StoreClient(
            region=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
            profile_name=settings.aws_profile,
            timeout_seconds=settings.call_timeout,
            max_attempts=settings.max_attempts,
        )
        app.state.service = StatsService(store, settings)
        logger.info(
            "Ad play monitor ready: table=%s bucket=%s",
            settings.plays_table,
            settings.media_bucket,
        )
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(
        title="Ad Play Statistics Monitor",
        description="Aggregated ad-play telemetry from DynamoDB and S3",
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(devices.router, prefix="/api/devices", tags=["Devices"])
    app.include_router(stats.router, prefix="/api/stats", tags=["Stats"])
    app.include_router(storage.router, prefix="/api", tags=["Storage"])

    @app.exception_handler(AdPlayMonitorError)
    async def monitor_error_handler(request: Request, exc: AdPlayMonitorError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": messages, "code": "InvalidRequest"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc) or "Internal error", "code": type(exc).__name__},
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon() -> Response:
        return Response(status_code=204)

    return app
