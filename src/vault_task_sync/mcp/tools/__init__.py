"""MCP tool handlers for the vault task sync engine.

This package contains MCP tool implementations that wrap the SyncEngine
with async handlers and structured error responses.
"""

from .errors import build_error_response
from .registry import (
    SYNC_RUN,
    SYNC_VIEW,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = list(SYNC_SPECS)

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "SYNC_RUN",
    "SYNC_VIEW",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "SYNC_TOOLS",
]
