"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_unified_config
from ..config_loader import discover_config_files
from ..core.async_utils import run_sync
from ..errors import ConfigurationError
from ..sync.engine import create_engine
from ..sync.scheduler import PeriodicSync

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Resolve configuration: CLI > env vars > .env > YAML > defaults
    - Validate the vault root and destination store access
    - Start the periodic sync timer (and the launch run, if configured)

    On shutdown:
    - Stop the timer; an in-flight run completes in its worker thread

    Args:
        config_overrides: Optional dict of ``SyncSettings`` values from CLI

    Yields:
        Dict with 'engine' (SyncEngine) and 'scheduler' (PeriodicSync)

    Raises:
        RuntimeError: If configuration is invalid or the task store is
            inaccessible.
    """
    logger.info("MCP server starting...")
    _stderr_print("Vault Task Sync MCP Server starting...")

    try:
        load_dotenv()
        config = load_unified_config(config_overrides)
        engine = create_engine(config)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure VAULT_SYNC_VAULT_PATH points to a vault.")
        raise RuntimeError(f"Configuration error: {e}") from e

    config_files = discover_config_files()
    source_desc = (
        f"config file: {config_files[0]}" if config_files else "defaults"
    )
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    _stderr_print(f"  Vault: {config.sync.vault_path}")

    granted = await run_sync(engine.destination.request_access)
    if not granted:
        logger.error("Task store access was not granted")
        _stderr_print("ERROR: Task store is not accessible.")
        raise RuntimeError(
            "Task store access was not granted. Check the destination path permissions."
        )

    scheduler = PeriodicSync(
        engine,
        interval_minutes=config.sync.sync_interval_minutes,
        run_on_start=config.sync.sync_on_launch,
    )
    await scheduler.start()
    if config.sync.dry_run:
        _stderr_print("  Dry run mode: no changes will be applied")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"engine": engine, "scheduler": scheduler}
    finally:
        await scheduler.stop()
        logger.info("MCP server shutting down")
        _stderr_print("Vault Task Sync MCP Server shutting down.")
