"""MCP server for the vault task sync engine (stdio transport).

Agents and external UIs use it to trigger runs, preview them as dry runs
and read status and history.  The engine lives for the whole server
process; the periodic timer started by the lifespan shares it with tool
calls, and the engine's run guard keeps them from overlapping.

stdout carries JSON-RPC, so all logging goes to a file and all human
messages go to stderr.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..sync.engine import SyncEngine
from ..version import check_version_consistency
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

SERVER_NAME = "vault-task-sync"

server = Server(SERVER_NAME)

# Installed by main() for the lifetime of the stdio session.
_engine: SyncEngine | None = None
_registry: ToolRegistry | None = None


async def _handle_ping(
    engine: SyncEngine, args: dict
) -> types.CallToolResult:
    state = "running a sync" if engine.is_running else "idle"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"{SERVER_NAME} {__version__} ({state}). "
                    f"Vault: {engine.settings.vault_path}"
                ),
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check the server is up; reports its version, vault and whether a sync is running",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


def get_engine() -> SyncEngine:
    if _engine is None:
        raise RuntimeError("Sync engine not initialized; the server lifespan has not started.")
    return _engine


def set_engine(engine: SyncEngine | None) -> None:
    global _engine
    _engine = engine


def get_registry() -> ToolRegistry:
    if _registry is None:
        raise RuntimeError("Tool registry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch a tool call; unknown and filtered-out names get an error result."""
    try:
        return await get_registry().call_tool(name, arguments, get_engine())
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Call list_tools and use one of the tool names it returns.",
        )


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Registry of ``ping`` plus the sync tools the permissions file allows."""
    specs = [PING_SPEC, *ALL_SPECS]
    granted = load_permissions_file(permissions_file) if permissions_file else None
    registry = ToolRegistry(specs, granted)

    logger.info(
        "Exposing %d of %d tools (permissions: %s)",
        registry.tool_count(),
        len(specs),
        ", ".join(sorted(granted)) if granted is not None else "all",
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(
    config_overrides: dict | None = None,
    log_file: str | None = None,
    permissions_file: str | None = None,
) -> None:
    """Serve MCP over stdio until the client disconnects.

    Args:
        config_overrides: ``SyncSettings`` values from the command line.
        log_file: Where to log; stdout is reserved for the protocol.
        permissions_file: Optional file restricting the exposed tools.
    """
    setup_logging(mode="mcp", log_file=log_file)

    consistent, message = check_version_consistency()
    (logger.info if consistent else logger.warning)(message)

    set_registry(build_registry(permissions_file))
    try:
        async with server_lifespan(config_overrides) as ctx:
            set_engine(ctx["engine"])
            async with mcp.server.stdio.stdio_server() as (reader, writer):
                await server.run(
                    reader,
                    writer,
                    InitializationOptions(
                        server_name=SERVER_NAME,
                        server_version=__version__,
                        capabilities=server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
    finally:
        set_engine(None)
        set_registry(None)


_EPILOG = """
Examples:
  # Vault from VAULT_SYNC_VAULT_PATH, .env or .vault_task_sync/config.yml
  vault-task-sync-mcp

  # Explicit vault, preview only
  vault-task-sync-mcp --vault ~/Notes --dry-run

  # Observe only: status, history and lists, never a run
  echo SYNC_VIEW > read-only.permissions
  vault-task-sync-mcp --permissions-file read-only.permissions

stdin/stdout carry the MCP protocol; messages for humans go to stderr.
"""


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vault-task-sync-mcp",
        description="MCP server that syncs markdown vault tasks into a task store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EPILOG,
    )
    parser.add_argument("--vault", help="Vault root directory")
    parser.add_argument(
        "--data-dir",
        help="Directory for sync state, logs, backups and the task store",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Report actions without applying them",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="File of granted permissions (SYNC_RUN, SYNC_VIEW), one per line. "
        "Without it every tool is exposed.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-task-sync-mcp version {__version__}",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> None:
    """Console entry point."""
    args = _parse_args(argv)
    overrides = {
        key: value
        for key, value in (
            ("vault_path", args.vault),
            ("data_dir", args.data_dir),
            ("dry_run", args.dry_run),
        )
        if value is not None
    }
    if overrides:
        print(
            f"Config overrides from CLI: {', '.join(overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(
            main(
                config_overrides=overrides or None,
                log_file=args.log_file,
                permissions_file=args.permissions_file,
            )
        )
    except RuntimeError:
        # server_lifespan has already explained the failure on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
