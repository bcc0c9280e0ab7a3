"""Data contracts shared by the sync engine, the adapters and the reporters.

- ``Priority``: ordered task priority with its numeric rank.
- ``SourceOrigin`` / ``DestinationOrigin``: where a ``TaskRecord`` came from.
- ``TaskRecord``: unified, transient representation of one task.
- ``Unchanged`` / ``Cleared`` / ``SetTo`` and ``MetadataChanges``:
  tri-state per-field change set for surgical metadata edits.
- ``SyncAction``, ``TaskActionResult``, ``SyncReport``: outcome of a run.

Pydantic models are frozen; callers derive new records with
``model_copy(update=...)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


class Priority(IntEnum):
    """Task priority. The integer value is the rank used in task IDs."""

    NONE = 0
    LOW = 1
    MEDIUM = 5
    HIGH = 9


# ---------------------------------------------------------------------------
# Task records
# ---------------------------------------------------------------------------


class SourceOrigin(BaseModel):
    """Position of a task in the vault, captured at scan time.

    Attributes:
        file_path: POSIX path relative to the vault root.
        line_number: 1-based line number.
        line_text: The line exactly as read, without its line terminator.
    """

    kind: Literal["source"] = "source"
    file_path: str
    line_number: int = Field(ge=1)
    line_text: str

    model_config = {"frozen": True}


class DestinationOrigin(BaseModel):
    """Identity of a task in the destination store."""

    kind: Literal["destination"] = "destination"
    task_id: str
    list_name: str | None = None

    model_config = {"frozen": True}


class TaskRecord(BaseModel):
    """A task, regardless of which store it was read from.

    Records are rebuilt on every scan and never persisted; the sync state
    mapping is the durable link between the two stores.
    """

    title: str
    is_completed: bool = False
    completion_date: date | None = None
    due_date: date | None = None
    start_date: date | None = None
    scheduled_date: date | None = None
    priority: Priority = Priority.NONE
    tags: tuple[str, ...] = ()
    notes: str = ""
    has_recurrence: bool = False
    origin: SourceOrigin | DestinationOrigin | None = None

    model_config = {"frozen": True}

    @property
    def source_origin(self) -> SourceOrigin | None:
        if isinstance(self.origin, SourceOrigin):
            return self.origin
        return None

    @property
    def destination_id(self) -> str | None:
        if isinstance(self.origin, DestinationOrigin):
            return self.origin.task_id
        return None

    @property
    def list_name(self) -> str | None:
        if isinstance(self.origin, DestinationOrigin):
            return self.origin.list_name
        return None

    @property
    def list_tag(self) -> str | None:
        """Top-level segment of the first tag, without the ``#``."""
        if not self.tags:
            return None
        return self.tags[0].lstrip("#").split("/", 1)[0] or None


# ---------------------------------------------------------------------------
# Tri-state metadata changes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Unchanged:
    """Leave the field as it is."""


@dataclass(frozen=True, slots=True)
class Cleared:
    """Remove the field's token from the line."""


@dataclass(frozen=True, slots=True)
class SetTo:
    """Set the field to ``value``, inserting the token if absent."""

    value: Any


FieldChange = Unchanged | Cleared | SetTo

UNCHANGED = Unchanged()
CLEARED = Cleared()


@dataclass(frozen=True, slots=True)
class MetadataChanges:
    """Per-field change set applied atomically by ``update_task_metadata``."""

    due_date: FieldChange = UNCHANGED
    start_date: FieldChange = UNCHANGED
    priority: FieldChange = UNCHANGED

    @property
    def has_changes(self) -> bool:
        return not all(
            isinstance(change, Unchanged)
            for change in (self.due_date, self.start_date, self.priority)
        )


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------


class SyncAction(str, Enum):
    """What the orchestrator did (or would do) for a single task."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UNLINK = "unlink"
    COMPLETE = "complete"
    UNCOMPLETE = "uncomplete"
    SKIP = "skip"


WRITEBACK_ACTIONS = frozenset({SyncAction.COMPLETE, SyncAction.UNCOMPLETE})


class TaskActionResult(BaseModel):
    """Result of one task-level action.

    Attributes:
        action: Action taken (or planned, in a dry run).
        task_title: Title of the task concerned.
        file_path: Vault-relative file of the source task, if any.
        source_id: Content-derived source ID.
        destination_id: Destination task ID, if known.
        success: Whether the action succeeded.
        error: Error message when ``success`` is False or the action was
            skipped for a reason worth reporting.
    """

    action: SyncAction
    task_title: str = ""
    file_path: str | None = None
    source_id: str | None = None
    destination_id: str | None = None
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate result of one orchestrator run.

    Attributes:
        dry_run: Whether mutations were suppressed.
        results: Ordered task-level results.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
        duration_seconds: Wall-clock duration of the run.
        error: Run-level error that aborted the run before any mutation.
    """

    dry_run: bool = False
    results: list[TaskActionResult] = []
    started_at: str
    completed_at: str | None = None
    duration_seconds: float = 0.0
    error: str | None = None

    model_config = {"frozen": True}

    def _successful(self, action: SyncAction) -> list[TaskActionResult]:
        return [
            r for r in self.results if r.action == action and r.success
        ]

    @property
    def created(self) -> list[TaskActionResult]:
        """Successful CREATE results."""
        return self._successful(SyncAction.CREATE)

    @property
    def updated(self) -> list[TaskActionResult]:
        """Successful UPDATE results."""
        return self._successful(SyncAction.UPDATE)

    @property
    def deleted(self) -> list[TaskActionResult]:
        """Successful DELETE results."""
        return self._successful(SyncAction.DELETE)

    @property
    def written_back(self) -> list[TaskActionResult]:
        """Successful completion writebacks to the vault."""
        return [
            r
            for r in self.results
            if r.action in WRITEBACK_ACTIONS and r.success
        ]

    @property
    def skipped(self) -> list[TaskActionResult]:
        """Results where action is SKIP."""
        return [r for r in self.results if r.action == SyncAction.SKIP]

    @property
    def errors(self) -> list[TaskActionResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def has_changes(self) -> bool:
        return bool(
            self.created or self.updated or self.deleted or self.written_back
        )

    def counts(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "deleted": len(self.deleted),
            "completions_written_back": len(self.written_back),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }

    def summary(self) -> str:
        """One-line summary, e.g. ``[DRY RUN] 2 created, 1 deleted``."""
        parts: list[str] = []
        if self.error:
            parts.append(f"Failed: {self.error}")
        else:
            if self.created:
                parts.append(f"{len(self.created)} created")
            if self.updated:
                parts.append(f"{len(self.updated)} updated")
            if self.deleted:
                parts.append(f"{len(self.deleted)} deleted")
            if self.written_back:
                parts.append(f"{len(self.written_back)} written back")
            if self.errors:
                parts.append(f"{len(self.errors)} errors")
            if not parts:
                parts.append("No changes")
        text = ", ".join(parts)
        if self.dry_run:
            text = f"[DRY RUN] {text}"
        return text
