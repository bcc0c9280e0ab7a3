"""Bounded, persisted log of sync runs.

``sync_log.json`` holds the most recent ``capacity`` run summaries, oldest
first on disk.  Recording a run past capacity evicts the oldest entries.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import BaseModel, ValidationError

from ..file_handler import write_file_atomic
from .models import SyncReport, TaskActionResult

logger = logging.getLogger(__name__)

HISTORY_FILENAME = "sync_log.json"
DEFAULT_CAPACITY = 200


class SyncLogEntry(BaseModel):
    """Snapshot of one ``SyncReport``.

    Attributes:
        started_at: ISO 8601 start time of the run.
        completed_at: ISO 8601 end time of the run.
        duration_seconds: Wall-clock duration.
        dry_run: Whether mutations were suppressed.
        counts: Per-category counts, see ``SyncReport.counts``.
        summary: One-line summary.
        error: Run-level error, if the run aborted.
        actions: Task-level results in the order they happened.
    """

    started_at: str
    completed_at: str | None = None
    duration_seconds: float = 0.0
    dry_run: bool = False
    counts: dict[str, int] = {}
    summary: str = ""
    error: str | None = None
    actions: list[TaskActionResult] = []

    model_config = {"frozen": True}

    @classmethod
    def from_report(cls, report: SyncReport) -> SyncLogEntry:
        return cls(
            started_at=report.started_at,
            completed_at=report.completed_at,
            duration_seconds=report.duration_seconds,
            dry_run=report.dry_run,
            counts=report.counts(),
            summary=report.summary(),
            error=report.error,
            actions=list(report.results),
        )


class SyncHistory:
    """Fixed-capacity run log persisted as JSON.

    Args:
        path: Location of ``sync_log.json``.
        capacity: Maximum number of entries kept.
    """

    def __init__(self, path: Path, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.path = path
        self.capacity = capacity
        self._lock = threading.Lock()

    def record(self, report: SyncReport) -> SyncLogEntry:
        """Append a run to the log, evicting the oldest past capacity."""
        entry = SyncLogEntry.from_report(report)
        with self._lock:
            entries = self._load()
            entries.append(entry)
            if len(entries) > self.capacity:
                del entries[: len(entries) - self.capacity]
            self._save(entries)
        return entry

    def entries(self, limit: int | None = None) -> list[SyncLogEntry]:
        """Return logged runs, newest first.

        Args:
            limit: Maximum number of entries to return.
        """
        with self._lock:
            entries = self._load()
        entries.reverse()
        if limit is not None:
            entries = entries[: max(limit, 0)]
        return entries

    def latest(self) -> SyncLogEntry | None:
        newest = self.entries(limit=1)
        return newest[0] if newest else None

    def clear(self) -> None:
        with self._lock:
            self._save([])
        logger.info("Cleared sync history %s", self.path)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> list[SyncLogEntry]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Sync history %s is unreadable (%s); starting a new log",
                self.path,
                exc,
            )
            return []

        items = raw.get("entries") if isinstance(raw, dict) else None
        if not isinstance(items, list):
            return []

        entries: list[SyncLogEntry] = []
        for item in items:
            try:
                entries.append(SyncLogEntry.model_validate(item))
            except ValidationError:
                logger.debug("Dropping malformed history entry: %r", item)
        return entries[-self.capacity :]

    def _save(self, entries: list[SyncLogEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": 1,
            "entries": [entry.model_dump(mode="json") for entry in entries],
        }
        write_file_atomic(
            self.path, json.dumps(payload, indent=2, ensure_ascii=False)
        )
