"""Command line entry point of the smart home service."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import uvicorn

from .api import create_session_client
from .cache import ReadingCache
from .client import TuyaClient
from .config import Config, ConfigError
from .control import ControlService
from .response_store import ResponseStore
from .rest import create_app
from .sensors import SensorPoller, SensorService
from .storage import ReadingStore, StorageError

if TYPE_CHECKING:
    from collections.abc import Coroutine

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _log_task_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    if (exc := task.exception()) is not None:
        _LOGGER.error("Background task %s failed", task.get_name(), exc_info=exc)


def start_background_task(
    coro: Coroutine[Any, Any, None], name: str
) -> asyncio.Task[None]:
    """Start a task whose unexpected failure is logged when it happens."""
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_log_task_failure)
    return task


async def async_stop_tasks(tasks: list[asyncio.Task[None]]) -> None:
    """Cancel the tasks and wait for all of them, even ones that failed."""
    for task in tasks:
        task.cancel()
    for task in tasks:
        # A failure was already logged by the done callback.
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task


async def _async_serve(config: Config) -> None:
    store = ReadingStore(config.database_url)
    await store.async_open()
    try:
        await store.async_migrate()
    except StorageError:
        await store.async_close()
        raise

    cache = ReadingCache()
    response_store = (
        ResponseStore(config.responses_dir) if config.responses_dir else None
    )
    client = TuyaClient(
        create_session_client(config.base_url, config.request_timeout),
        config.credentials,
        response_store=response_store,
    )
    poller = SensorPoller(
        SensorService(client, store, cache), config.devices, config.poll_interval
    )
    control = ControlService(client, cache, config.control_interval)

    tasks = [
        start_background_task(poller.async_run(), "sensor-poller"),
        start_background_task(control.async_run(), "control-loop"),
    ]
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(store, cache),
            host=config.server_host,
            port=config.server_port,
            log_level=config.log_level.lower(),
        )
    )
    _LOGGER.info("Listening on %s:%s", config.server_host, config.server_port)
    try:
        await server.serve()
    finally:
        await async_stop_tasks(tasks)
        try:
            await client.async_close()
        finally:
            await store.async_close()
        _LOGGER.info("Shutdown complete")


@click.group()
def cli() -> None:
    """Smart home telemetry service for Tuya cloud devices."""


@cli.command()
def serve() -> None:
    """Poll devices, run the control loop and serve the REST API."""
    try:
        config = Config.from_env()
    except ConfigError as err:
        raise click.ClickException(str(err)) from err

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    _LOGGER.info(
        "Starting with %d device(s) against %s", len(config.devices), config.base_url
    )
    try:
        asyncio.run(_async_serve(config))
    except StorageError as err:
        raise click.ClickException(str(err)) from err


@cli.command()
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the document to a file instead of stdout",
)
def openapi(output_path: Path | None) -> None:
    """Print the OpenAPI document of the REST API."""
    app = create_app(ReadingStore(""), ReadingCache())
    document = json.dumps(app.openapi(), indent=2)
    if output_path is None:
        click.echo(document)
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(document + "\n", encoding="utf-8")
    click.echo(f"OpenAPI document written to {output_path}")


if __name__ == "__main__":
    cli()
