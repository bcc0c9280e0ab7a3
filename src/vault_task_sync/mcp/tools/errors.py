"""Result builders shared by the MCP tool handlers.

Failures are returned to the agent as ``isError`` results whose text names
the error category and a concrete next step, so that an agent can recover
(wait out a running sync, fix an argument) without a human.
"""

from datetime import datetime, timezone
from typing import Any

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Error result in the form ``Error (<type>): <message>`` + ``Action: ...``.

    Error types used by this server: sync_in_progress, configuration_error,
    access_denied, validation_error, server_error, unknown_tool.

    Examples:
        >>> build_error_response("sync_in_progress", "A sync run is already in progress", "Retry in a few seconds.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    return text_result(
        f"Error ({error_type}): {message}\n\nAction: {corrective_action}",
        is_error=True,
    )


def text_result(
    text: str, structured: dict | None = None, is_error: bool = False
) -> types.CallToolResult:
    """Result with a text block and, optionally, machine-readable content."""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
        isError=is_error,
    )


def format_timestamp(timestamp: Any) -> str:
    """Render a sync time as ``YYYY-MM-DD HH:MM``.

    Accepts datetimes, ISO 8601 strings (as stored in the sync state) and
    Unix timestamps, read as UTC.  ``None`` means the vault was never
    synced.  Unparseable strings are returned unchanged.
    """
    if timestamp is None:
        return "never"
    if isinstance(timestamp, str):
        try:
            timestamp = datetime.fromisoformat(timestamp)
        except ValueError:
            return timestamp
    elif isinstance(timestamp, (int, float)):
        timestamp = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    if isinstance(timestamp, datetime):
        return timestamp.strftime("%Y-%m-%d %H:%M")
    return str(timestamp)
