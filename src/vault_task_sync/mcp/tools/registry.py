"""Tool specs and the permission-filtered registry the MCP server dispatches through.

Two permissions gate the sync tools:

- ``SYNC_RUN``: may trigger a run (the only tool that touches the vault).
- ``SYNC_VIEW``: may read status, history and destination lists.

A deployment that should only observe passes a permissions file listing
``SYNC_VIEW``; ``task_sync`` is then never advertised to the agent.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import mcp.types as types

from ...errors import (
    ConfigurationError,
    DestinationAccessError,
    SyncInProgressError,
)
from .errors import build_error_response

if TYPE_CHECKING:
    from ...sync.engine import SyncEngine

logger = logging.getLogger(__name__)

SYNC_RUN = "SYNC_RUN"
SYNC_VIEW = "SYNC_VIEW"
KNOWN_PERMISSIONS = frozenset({SYNC_RUN, SYNC_VIEW})

ToolHandler = Callable[["SyncEngine", dict], Awaitable[types.CallToolResult]]

# Exceptions a handler may let escape, in match order, with the error
# category and the corrective action reported to the agent.
_ERROR_TRANSLATIONS: tuple[tuple[type[Exception], str, str], ...] = (
    (
        SyncInProgressError,
        "sync_in_progress",
        "Wait for the current run to finish, then retry.",
    ),
    (
        ConfigurationError,
        "configuration_error",
        "Set VAULT_SYNC_VAULT_PATH or sync.vault_path to a vault "
        "directory and restart the server.",
    ),
    (
        DestinationAccessError,
        "access_denied",
        "Check that the task store file is readable and writable.",
    ),
    (
        ValueError,
        "validation_error",
        "Fix the tool arguments and call the tool again.",
    ),
)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One MCP tool: its definition, the permissions it needs and its handler.

    A spec with no permissions is exposed in every deployment.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.tool.name

    def allowed_by(self, granted: frozenset[str] | None) -> bool:
        """True if *granted* covers this tool; ``None`` grants everything."""
        return granted is None or self.permissions <= granted


class ToolRegistry:
    """Tools the server advertises, keyed by name.

    Filtering happens once, at construction; a filtered-out tool behaves
    exactly like one that does not exist.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs = {
            spec.name: spec
            for spec in specs
            if spec.allowed_by(allowed_permissions)
        }

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        engine: SyncEngine,
    ) -> types.CallToolResult:
        """Run the handler for *name* against *engine*.

        Engine and argument errors become ``isError`` results carrying a
        corrective action; anything unexpected is logged with its traceback
        and reported as ``server_error``.

        Raises:
            ValueError: If no permitted tool is called *name*.
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")

        try:
            return await spec.handler(engine, arguments or {})
        except Exception as e:
            for exc_type, error_type, action in _ERROR_TRANSLATIONS:
                if isinstance(e, exc_type):
                    logger.info("Tool %s failed (%s): %s", name, error_type, e)
                    return build_error_response(error_type, str(e), action)
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error", str(e), "Check the server log file and retry."
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read granted permissions, one per line.

    Blank lines and lines starting with ``#`` are skipped::

        # observe only
        SYNC_VIEW

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: On an unknown permission name, or when the file grants
            nothing.
    """
    path = Path(path)
    granted: set[str] = set()
    for line_no, raw in enumerate(path.read_text().splitlines(), start=1):
        entry = raw.strip()
        if not entry or entry.startswith("#"):
            continue
        if entry not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Unknown permission '{entry}' at line {line_no} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        granted.add(entry)
    if not granted:
        raise ValueError(f"No permissions found in {path}.")
    return frozenset(granted)
