"""Command-line interface for the ad-play monitor."""

import asyncio
import json
import logging
import os
import sys
from typing import Any

import click

from .config import Settings, get_settings
from .exceptions import AdPlayMonitorError
from .repository import StoreClient
from .service import StatsService

APP_FACTORY = "adplay_monitor.api.app:create_app"


def _settings(ctx: click.Context) -> Settings:
    settings: Settings = ctx.obj
    return settings


def _store(settings: Settings) -> StoreClient:
    return StoreClient(
        region=settings.aws_region,
        endpoint_url=settings.aws_endpoint_url,
        profile_name=settings.aws_profile,
        timeout_seconds=settings.call_timeout,
        max_attempts=settings.max_attempts,
    )


@click.group()
@click.version_option(package_name="adplay-monitor")
@click.option("--region", help="AWS region (default: ADPLAY_AWS_REGION or ap-southeast-2)")
@click.option("--profile", help="AWS credentials profile")
@click.option(
    "--endpoint-url",
    help="AWS endpoint URL (e.g., http://localhost:4566 for LocalStack)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    region: str | None,
    profile: str | None,
    endpoint_url: str | None,
) -> None:
    """Ad play statistics monitor."""
    overrides: dict[str, Any] = {}
    if region:
        overrides["aws_region"] = region
    if profile:
        overrides["aws_profile"] = profile
    if endpoint_url:
        overrides["aws_endpoint_url"] = endpoint_url
    settings = get_settings()
    ctx.obj = settings.model_copy(update=overrides) if overrides else settings


@cli.command()
@click.option("--host", help="Bind address (default: ADPLAY_API_HOST or 0.0.0.0)")
@click.option("--port", type=int, help="Bind port (default: ADPLAY_API_PORT or 3001)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP API."""
    import uvicorn

    from .api import create_app

    settings = _settings(ctx)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    click.echo(f"Serving on http://{host or settings.api_host}:{port or settings.api_port}")
    click.echo(f"  Table: {settings.plays_table}")
    click.echo(f"  Bucket: {settings.media_bucket}")
    app: Any
    if reload:
        # The reloader builds the app in a fresh process from the environment
        for name in ("aws_region", "aws_profile", "aws_endpoint_url"):
            value = getattr(settings, name)
            if value:
                os.environ[f"ADPLAY_{name.upper()}"] = value
        app = APP_FACTORY
    else:
        app = create_app(settings)
    uvicorn.run(
        app,
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        factory=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.pass_context
def tables(ctx: click.Context) -> None:
    """List tables visible to the configured credentials."""
    settings = _settings(ctx)

    async def _tables() -> list[str]:
        async with _store(settings) as store:
            return await store.list_tables()

    try:
        names = asyncio.run(_tables())
    except AdPlayMonitorError as e:
        click.echo(f"✗ Failed to list tables: {e}", err=True)
        sys.exit(1)

    if not names:
        click.echo("No tables found.")
        return
    for name in names:
        click.echo(name)


@cli.command("test-table")
@click.argument("table_name")
@click.option("--limit", default=1, type=click.IntRange(1, 100), help="Items to sample")
@click.pass_context
def test_table(ctx: click.Context, table_name: str, limit: int) -> None:
    """Scan a few items of TABLE_NAME to check access and item shape."""
    settings = _settings(ctx)

    async def _sample() -> dict[str, Any]:
        async with _store(settings) as store:
            page = await StatsService(store, settings).query_table(table_name, limit=limit)
            return {
                "items": page.items,
                "count": page.count,
                "scannedCount": page.scanned_count,
            }

    click.echo(f"Testing table: {table_name}")
    click.echo("---")
    try:
        result = asyncio.run(_sample())
    except AdPlayMonitorError as e:
        click.echo(f"✗ {e.code}: {e}", err=True)
        sys.exit(1)
    click.echo(json.dumps(result, indent=2, default=str))


@cli.command()
@click.pass_context
def devices(ctx: click.Context) -> None:
    """List devices found in the media bucket."""
    settings = _settings(ctx)

    async def _devices() -> list[str]:
        async with _store(settings) as store:
            return await StatsService(store, settings).list_devices()

    try:
        names = asyncio.run(_devices())
    except AdPlayMonitorError as e:
        click.echo(f"✗ Failed to list devices: {e}", err=True)
        sys.exit(1)

    click.echo(f"{len(names)} device(s) in {settings.media_bucket}")
    for name in names:
        click.echo(f"  {name}")


if __name__ == "__main__":
    cli()
