"""Command-line interface for vault-task-sync.

Commands:
    sync         Run one sync (``--dry-run`` to preview)
    status       Show mapping count, last sync and last result
    history      Show recent runs (``--clear`` to empty the log)
    lists        Show lists available in the task store
    init-config  Write a starter config file

Exit status is 0 on success, 1 when a run failed or recorded task errors,
2 for configuration errors and 3 when another run is in progress.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import load_unified_config
from .config_loader import ensure_config
from .config_schema import UnifiedConfig
from .errors import ConfigurationError, DestinationAccessError, SyncInProgressError
from .logger import setup_logging
from .sync.engine import create_engine
from .sync.history import HISTORY_FILENAME, SyncHistory
from .sync.reporter import (
    format_dry_run_preview,
    format_history,
    format_sync_report,
    report_to_json,
)
from .sync.state import SyncStateStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_BUSY = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-task-sync",
        description="Sync tasks from a markdown vault into a structured task store",
    )
    parser.add_argument(
        "--vault",
        help="Vault root (takes precedence over VAULT_SYNC_VAULT_PATH and config files)",
    )
    parser.add_argument(
        "--data-dir",
        help="Directory for sync state, logs, backups and the task store",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-task-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Run one sync")
    sync.add_argument(
        "--dry-run", action="store_true", help="Preview without applying"
    )
    sync.add_argument(
        "--writeback",
        action="store_true",
        default=None,
        help="Write destination completion state back to the vault",
    )
    sync.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )

    sub.add_parser("status", help="Show sync status")

    history = sub.add_parser("history", help="Show recent sync runs")
    history.add_argument(
        "--limit", type=int, default=10, help="Runs to show (default: 10)"
    )
    history.add_argument(
        "--clear", action="store_true", help="Empty the sync log"
    )

    sub.add_parser("lists", help="Show lists in the task store")

    init = sub.add_parser("init-config", help="Write a starter config file")
    init.add_argument(
        "--path",
        help="Where to write it (default: ./.vault_task_sync/config.yml)",
    )

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_sync(config: UnifiedConfig, args: argparse.Namespace) -> int:
    engine = create_engine(config)
    report = engine.run(dry_run=True if args.dry_run else None)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif report.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))

    if report.error or report.errors:
        return EXIT_FAILED
    return EXIT_OK


def _cmd_status(config: UnifiedConfig, args: argparse.Namespace) -> int:
    settings = config.sync
    state = SyncStateStore(settings.data_path).load()
    history = SyncHistory(
        settings.data_path / HISTORY_FILENAME, settings.history_capacity
    )
    latest = history.latest()

    print(f"Vault:         {settings.vault_path or '(not configured)'}")
    print(f"Data dir:      {settings.data_path}")
    print(f"Last sync:     {state.get('last_sync') or 'never'}")
    print(f"Tracked tasks: {len(SyncStateStore.entries(state))}")
    print(
        f"Writeback:     {'on' if settings.enable_completion_writeback else 'off'}"
    )
    if latest is not None:
        print(f"Last result:   {latest.summary}")
    return EXIT_OK


def _cmd_history(config: UnifiedConfig, args: argparse.Namespace) -> int:
    settings = config.sync
    history = SyncHistory(
        settings.data_path / HISTORY_FILENAME, settings.history_capacity
    )
    if args.clear:
        history.clear()
        print("Sync history cleared.")
        return EXIT_OK
    print(format_history(history.entries(limit=args.limit)))
    return EXIT_OK


def _cmd_lists(config: UnifiedConfig, args: argparse.Namespace) -> int:
    engine = create_engine(config)
    if not engine.destination.request_access():
        raise DestinationAccessError(
            "Access to the destination task store was not granted"
        )
    for name in engine.destination.get_available_lists():
        print(name)
    return EXIT_OK


_COMMANDS = {
    "sync": _cmd_sync,
    "status": _cmd_status,
    "history": _cmd_history,
    "lists": _cmd_lists,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "init-config":
        setup_logging(mode="cli", debug=args.debug)
        path = ensure_config(Path(args.path) if args.path else None)
        print(f"Config file: {path}")
        return EXIT_OK

    load_dotenv()
    overrides = {
        "vault_path": args.vault,
        "data_dir": args.data_dir,
        "enable_completion_writeback": getattr(args, "writeback", None),
    }
    try:
        config = load_unified_config(overrides)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        debug_format=args.debug_format,
        level=config.logging.level,
    )

    try:
        return _COMMANDS[args.command](config, args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except SyncInProgressError as e:
        print(str(e), file=sys.stderr)
        return EXIT_BUSY
    except DestinationAccessError as e:
        print(f"Task store error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
