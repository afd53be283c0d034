"""Entry point: python -m openapi_sync

Reads openapi.sync.json/yaml from the working directory (or --config) and
regenerates every configured API.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from .clients import CLIENT_EMITTERS
from .config import SyncConfig, load_config
from .errors import SyncError
from .models import SyncResult
from .scheduler import init
from .sync import generate_client

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _load(config_path: Path | None) -> SyncConfig:
    try:
        return load_config(config_path)
    except SyncError as e:
        raise click.ClickException(str(e)) from e


def _report(results: list[SyncResult]) -> None:
    for result in results:
        if result.ok:
            state = "unchanged" if result.unchanged else "ok"
            click.echo(f"{result.api_name}: {state} ({result.endpoint_count} endpoints, {len(result.files)} files)")
        else:
            click.echo(f"{result.api_name}: failed ({result.error_type}: {result.error})", err=True)


async def _sync(config: SyncConfig, refetch_interval: int | None) -> list[SyncResult]:
    scheduler = await init(config, refetch_interval=refetch_interval)
    _report(scheduler.results)
    if scheduler.polling:
        try:
            await scheduler.join()
        finally:
            scheduler.stop()
    return scheduler.results


async def _generate(config: SyncConfig, api_names: list[str], client_type: str) -> list[Path]:
    scheduler = await init(config, refetch_interval=0)
    _report(scheduler.results)
    written: list[Path] = []
    for api_name in api_names:
        written.extend(await generate_client(
            api_name, config, registry=scheduler.registry, client_type=client_type,
        ))
    return written


@click.group()
def main():
    """Keep TypeScript types, endpoints and clients in sync with OpenAPI specs."""
    pass


@main.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Config file (default: openapi.sync.json/yaml in the working directory).")
@click.option("--refetch-interval", type=int, default=None, help="Polling interval in milliseconds; 0 runs a single pass.")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
def sync(config_path: Path | None, refetch_interval: int | None, verbose: int):
    """Regenerate every configured API, once or on an interval."""
    _configure_logging(verbose)
    config = _load(config_path)
    try:
        results = asyncio.run(_sync(config, refetch_interval))
    except KeyboardInterrupt:
        click.echo("Stopped.")
        return
    if any(not result.ok for result in results):
        sys.exit(1)


@main.command(name="generate-client")
@click.option("--type", "client_type", required=True, type=click.Choice(list(CLIENT_EMITTERS)), help="Client flavor to generate.")
@click.option("--api", "api_name", default=None, help="Only this API (default: all configured APIs).")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Config file (default: openapi.sync.json/yaml in the working directory).")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
def generate_client_command(client_type: str, api_name: str | None, config_path: Path | None, verbose: int):
    """Generate an API client from the endpoints of a fresh sync pass."""
    _configure_logging(verbose)
    config = _load(config_path)
    if api_name is not None and api_name not in config.api:
        raise click.ClickException(f"Unknown API '{api_name}'; configured: {', '.join(config.api)}")
    api_names = [api_name] if api_name else list(config.api)
    try:
        written = asyncio.run(_generate(config, api_names, client_type))
    except SyncError as e:
        raise click.ClickException(str(e)) from e
    for path in written:
        click.echo(f"  Created {path}")
    click.echo(f"Generated {len(written)} client files")


if __name__ == "__main__":
    main()
