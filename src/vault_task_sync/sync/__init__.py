"""One-way task sync from a markdown vault to a structured task store.

The vault is the source of truth.  The only vault writes are surgical
completion edits, and only when completion writeback is enabled.

Modules:

- ``engine``    -- ``SyncEngine``: orchestrates a full run; ``create_engine``
  wires one from configuration.
- ``identity``  -- content-derived source IDs and change-detection hashes.
- ``state``     -- ``SyncStateStore``: the versioned ID mapping.
- ``history``   -- ``SyncHistory``: bounded log of past runs.
- ``models``    -- ``TaskRecord``, ``MetadataChanges``, ``SyncAction``,
  ``TaskActionResult``, ``SyncReport``: core data contracts.
- ``reporter``  -- Human-readable and JSON report formatting.
- ``scheduler`` -- ``PeriodicSync``: timer and launch triggers.

The engine is imported from ``vault_task_sync.sync.engine`` directly; it
depends on the adapter packages, which themselves import ``models``.

Usage example
-------------
::

    from vault_task_sync.config import load_unified_config
    from vault_task_sync.sync import format_sync_report
    from vault_task_sync.sync.engine import create_engine

    engine = create_engine(load_unified_config({"vault_path": "~/Notes"}))

    preview = engine.run(dry_run=True)
    print(format_sync_report(preview))

    report = engine.run()
    print(format_sync_report(report))
"""

from .history import SyncHistory, SyncLogEntry
from .identity import ID_SCHEME_VERSION, content_hash, generate_task_id
from .models import (
    CLEARED,
    UNCHANGED,
    Cleared,
    DestinationOrigin,
    MetadataChanges,
    Priority,
    SetTo,
    SourceOrigin,
    SyncAction,
    SyncReport,
    TaskActionResult,
    TaskRecord,
    Unchanged,
)
from .reporter import (
    format_dry_run_preview,
    format_history,
    format_sync_report,
    report_to_json,
)
from .scheduler import PeriodicSync
from .state import SyncStateStore

__all__ = [
    "CLEARED",
    "Cleared",
    "DestinationOrigin",
    "ID_SCHEME_VERSION",
    "MetadataChanges",
    "PeriodicSync",
    "Priority",
    "SetTo",
    "SourceOrigin",
    "SyncAction",
    "SyncHistory",
    "SyncLogEntry",
    "SyncReport",
    "SyncStateStore",
    "TaskActionResult",
    "TaskRecord",
    "UNCHANGED",
    "Unchanged",
    "content_hash",
    "format_dry_run_preview",
    "format_history",
    "format_sync_report",
    "generate_task_id",
    "report_to_json",
]
