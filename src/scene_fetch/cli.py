"""Command-line interface for fetching scene data."""

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from .config import FetchSettings
from .exceptions import SceneFetchError
from .managers import MANAGER_CLASSES, SceneDataClient
from .models import ResponseType

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to the server."""
    func = click.option(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (env: SCENE_FETCH_TIMEOUT, default: 30)",
    )(func)
    func = click.option(
        "--concurrency",
        type=click.IntRange(min=1),
        default=None,
        help="Simultaneous requests per entity type (env: SCENE_FETCH_CONCURRENCY, default: 6)",
    )(func)
    func = click.option(
        "--bunch-size",
        type=click.IntRange(min=1),
        default=None,
        help="Maximum ids per batch read (env: SCENE_FETCH_BUNCH_SIZE, default: 500)",
    )(func)
    func = click.option(
        "--base-url",
        default=None,
        help="Root URL of the data server (env: SCENE_FETCH_BASE_URL)",
    )(func)
    return func


def _load_settings(
    base_url: str | None,
    bunch_size: int | None,
    concurrency: int | None,
    timeout: float | None,
) -> FetchSettings:
    try:
        return FetchSettings.from_env(
            base_url=base_url,
            bunch_size=bunch_size,
            concurrency=concurrency,
            timeout_seconds=timeout,
        )
    except SceneFetchError as e:
        click.echo(f"✗ Invalid settings: {e}", err=True)
        sys.exit(1)


def _parse_json_option(name: str, value: str | None) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"Not valid JSON: {e}", param_hint=name) from None


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True, default=str))


@click.group()
@click.version_option(package_name="scene-fetch")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging level (default: WARNING)",
)
def cli(log_level: str) -> None:
    """scene-fetch: read and download scene data."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@click.argument("entity", type=click.Choice(sorted(MANAGER_CLASSES)))
@click.argument("ids", nargs=-1, required=True)
@connection_options
def read(
    entity: str,
    ids: tuple[str, ...],
    base_url: str | None,
    bunch_size: int | None,
    concurrency: int | None,
    timeout: float | None,
) -> None:
    """Read ENTITY documents by id and print them as JSON."""
    settings = _load_settings(base_url, bunch_size, concurrency, timeout)

    async def _read() -> dict[str, Any]:
        async with SceneDataClient.from_settings(settings) as client:
            return await client[entity].fetch(list(ids))

    try:
        results = asyncio.run(_read())
    except SceneFetchError as e:
        click.echo(f"✗ Read failed: {e}", err=True)
        sys.exit(1)

    missing = [key for key in ids if key not in results]
    if missing:
        click.echo(f"⚠️  Not found: {', '.join(missing)}", err=True)
    _echo_json(results)


@cli.command()
@click.argument("entity", type=click.Choice(sorted(MANAGER_CLASSES)))
@click.option("--where", "where", default=None, help="Query as JSON (default: all documents)")
@click.option("--projection", default=None, help="Projection as JSON")
@connection_options
def query(
    entity: str,
    where: str | None,
    projection: str | None,
    base_url: str | None,
    bunch_size: int | None,
    concurrency: int | None,
    timeout: float | None,
) -> None:
    """Read ENTITY documents matching a query and print them as JSON."""
    conditions = _parse_json_option("--where", where) or {}
    fields = _parse_json_option("--projection", projection)
    if not isinstance(conditions, dict):
        raise click.BadParameter("Expected a JSON object", param_hint="--where")
    settings = _load_settings(base_url, bunch_size, concurrency, timeout)

    async def _query() -> Any:
        async with SceneDataClient.from_settings(settings) as client:
            manager = client[entity]
            if conditions:
                return await manager.fetch_where(conditions, fields)
            return await manager.fetch_all(fields)

    try:
        results = asyncio.run(_query())
    except SceneFetchError as e:
        click.echo(f"✗ Query failed: {e}", err=True)
        sys.exit(1)

    _echo_json(results)


@cli.command()
@click.argument("path")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="File to write (default: stdout)",
)
@connection_options
def download(
    path: str,
    output: Path | None,
    base_url: str | None,
    bunch_size: int | None,
    concurrency: int | None,
    timeout: float | None,
) -> None:
    """Download the resource at PATH."""
    settings = _load_settings(base_url, bunch_size, concurrency, timeout)

    async def _download() -> bytes:
        async with SceneDataClient.from_settings(settings) as client:
            data = await client.download(path, response_type=ResponseType.ARRAY_BUFFER)
            return data or b""

    try:
        data = asyncio.run(_download())
    except SceneFetchError as e:
        click.echo(f"✗ Download failed: {e}", err=True)
        sys.exit(1)

    if output is None:
        click.echo(data, nl=False)
    else:
        output.write_bytes(data)
        click.echo(f"✓ Wrote {len(data)} bytes to {output}", err=True)


if __name__ == "__main__":
    cli()
