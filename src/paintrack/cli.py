"""CLI for PainTrack: run the API server and check database connectivity."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from paintrack.config import AppConfig, ConfigError, load_config
from paintrack.core.logging import configure_logging
from paintrack.storage.base import StorageState
from paintrack.storage.facade import StorageFacade


def _load(config_path: Path | None) -> AppConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(2)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """PainTrack: pain and medication tracking API."""


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to paintrack.toml (defaults to $PAINTRACK_CONFIG)",
)
@click.option("--host", default=None, help="Bind address (overrides [server].host)")
@click.option("--port", type=int, default=None, help="Port (overrides [server].port)")
def serve(config_path: Path | None, host: str | None, port: int | None) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from paintrack.api.app import create_app

    config = _load(config_path)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.log_file,
    )
    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
    )


@cli.command("check-db")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to paintrack.toml (defaults to $PAINTRACK_CONFIG)",
)
def check_db(config_path: Path | None) -> None:
    """Probe the primary store once and report whether it is reachable."""
    config = _load(config_path)
    configure_logging(level="WARNING", fmt=config.logging.format)
    if not config.storage.database_url:
        click.echo("No database URL configured (set DATABASE_URL); running in memory only.")
        sys.exit(1)

    # Single probe: no background reconnection.
    config.storage.reconnect.max_attempts = 0
    state = asyncio.run(_probe(config))
    if state is StorageState.HEALTHY:
        click.echo("PostgreSQL reachable; primary store healthy.")
        return
    click.echo("PostgreSQL unreachable; the service would run on in-memory storage.")
    sys.exit(1)


async def _probe(config: AppConfig) -> StorageState:
    facade = StorageFacade(config.storage)
    try:
        return await facade.init()
    finally:
        await facade.shutdown()
