"""Shared CLI helpers for configuration, storage, and output formatting."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer

from tasksync.storage.sqlite_store import SQLiteStorage
from tasksync.sync.orchestrator import SyncOrchestrator
from tasksync.sync.retry_policy import RetryPolicy
from tasksync.unified_config import UnifiedConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Resources opened during a CLI command, closed before the event loop shuts
# down (prevents "Event loop is closed" noise from aiosqlite's thread).
_active_resources: list[Any] = []


def get_config() -> UnifiedConfig:
    """Get CLI configuration."""
    return UnifiedConfig.load()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async CLI command with proper resource cleanup."""

    async def _with_cleanup() -> T:
        try:
            return await coro
        finally:
            for resource in reversed(_active_resources):
                try:
                    await resource.close()
                except Exception:
                    logger.debug("Failed to close resource during cleanup", exc_info=True)
            _active_resources.clear()
            await asyncio.sleep(0)

    return asyncio.run(_with_cleanup())


async def get_storage(config: UnifiedConfig) -> SQLiteStorage:
    """Open the task database for this command."""
    storage = SQLiteStorage(config.db_path)
    await storage.initialize()
    _active_resources.append(storage)
    return storage


async def get_orchestrator(config: UnifiedConfig) -> SyncOrchestrator:
    """Build an orchestrator wired to the configured remote."""
    storage = await get_storage(config)
    orchestrator = SyncOrchestrator.create(
        storage,
        config.remote.api_url,
        request_timeout=config.remote.request_timeout,
        health_timeout=config.remote.health_timeout,
        batch_size=config.sync.batch_size,
        retry_policy=RetryPolicy(max_retries=config.sync.max_retries),
        tie_break=config.sync.tie_break,
    )
    _active_resources.append(orchestrator)
    return orchestrator


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output a result dict as JSON or as plain lines."""
    if as_json:
        typer.echo(json.dumps(data, indent=2, default=str))
        return
    if "error" in data:
        typer.secho(f"Error: {data['error']}", fg=typer.colors.RED)
        return
    if "message" in data:
        typer.echo(data["message"])
