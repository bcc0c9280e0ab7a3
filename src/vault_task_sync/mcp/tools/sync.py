"""MCP tool handlers for the vault task sync engine.

Defines four tools:

- ``task_sync`` -- run a sync now (with optional dry-run).
- ``task_sync_status`` -- configuration summary, mapping count and last run.
- ``task_sync_history`` -- recent runs from the sync log.
- ``task_lists`` -- lists available in the destination store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...errors import DestinationAccessError
from ...sync.reporter import (
    format_dry_run_preview,
    format_history,
    format_sync_report,
    report_to_json,
)
from ...sync.state import SyncStateStore
from .errors import format_timestamp, text_result
from .registry import SYNC_RUN, SYNC_VIEW, ToolSpec

if TYPE_CHECKING:
    from ...sync.engine import SyncEngine

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="task_sync",
        description=(
            "Synchronize tasks from the markdown vault into the task store. "
            "The vault is the source of truth; completion state is written "
            "back to the vault only when completion writeback is enabled."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "dry_run": {
                    "type": "boolean",
                    "description": (
                        "Preview changes without applying them. "
                        "Defaults to the configured dry_run setting."
                    ),
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="task_sync_status",
        description=(
            "Show sync status -- vault path, last sync time, number of "
            "tracked tasks, whether a run is in progress and the last result."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="task_sync_history",
        description="List recent sync runs, newest first.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "default": DEFAULT_HISTORY_LIMIT,
                    "description": "Maximum number of runs to return",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="task_lists",
        description="List the task lists available in the destination store.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_task_sync(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``task_sync`` tool."""
    dry_run = args.get("dry_run")
    if dry_run is not None and not isinstance(dry_run, bool):
        raise ValueError("dry_run must be a boolean")

    report = await run_sync(engine.run, dry_run=dry_run)

    if report.dry_run:
        text = format_dry_run_preview(report)
    else:
        text = format_sync_report(report)

    return text_result(
        text, report_to_json(report), is_error=report.error is not None
    )


async def _handle_task_sync_status(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``task_sync_status`` tool."""
    settings = engine.settings
    state = await run_sync(engine.state_store.load)
    tracked = len(SyncStateStore.entries(state))
    last_sync = state.get("last_sync")

    latest = None
    if engine.history is not None:
        latest = await run_sync(engine.history.latest)

    lines = [
        "Sync status",
        f"  Vault:        {settings.vault_path}",
        f"  Last sync:    {format_timestamp(last_sync)}",
        f"  Tracked tasks: {tracked}",
        f"  Running:      {'yes' if engine.is_running else 'no'}",
        f"  Interval:     {settings.sync_interval_minutes} min",
        f"  Writeback:    {'on' if settings.enable_completion_writeback else 'off'}",
        f"  Dry run:      {'on' if settings.dry_run else 'off'}",
    ]
    if latest is not None:
        lines.append(f"  Last result:  {latest.summary}")

    structured = {
        "vault_path": settings.vault_path,
        "last_sync": last_sync,
        "tracked_tasks": tracked,
        "running": engine.is_running,
        "sync_interval_minutes": settings.sync_interval_minutes,
        "completion_writeback": settings.enable_completion_writeback,
        "dry_run": settings.dry_run,
        "last_result": latest.summary if latest is not None else None,
    }
    return text_result("\n".join(lines), structured)


async def _handle_task_sync_history(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``task_sync_history`` tool."""
    limit = args.get("limit", DEFAULT_HISTORY_LIMIT)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
        raise ValueError("limit must be a positive integer")

    if engine.history is None:
        return text_result("Sync history is not enabled.", {"runs": []})

    entries = await run_sync(engine.history.entries, limit)
    structured = {
        "runs": [entry.model_dump(mode="json") for entry in entries]
    }
    return text_result(format_history(entries), structured)


async def _handle_task_lists(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``task_lists`` tool."""

    def fetch() -> list[str]:
        if not engine.destination.request_access():
            raise DestinationAccessError(
                "Access to the destination task store was not granted"
            )
        return engine.destination.get_available_lists()

    lists = await run_sync(fetch)
    if lists:
        text = "Available lists:\n" + "\n".join(f"  {name}" for name in lists)
    else:
        text = "No lists found."
    return text_result(text, {"lists": lists})


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        permissions=frozenset({SYNC_RUN}),
        handler=_handle_task_sync,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[1],
        permissions=frozenset({SYNC_VIEW}),
        handler=_handle_task_sync_status,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[2],
        permissions=frozenset({SYNC_VIEW}),
        handler=_handle_task_sync_history,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[3],
        permissions=frozenset({SYNC_VIEW}),
        handler=_handle_task_lists,
    ),
]
