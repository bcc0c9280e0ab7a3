"""The ``TaskSource`` capability consumed by the sync orchestrator."""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol, runtime_checkable

from ..sync.models import MetadataChanges, SourceOrigin, TaskRecord


@runtime_checkable
class TaskSource(Protocol):
    """Authoritative task store that can only be changed surgically.

    ``mark_task_complete``, ``mark_task_incomplete`` and
    ``update_task_metadata`` must verify the captured line before writing
    and raise ``StaleTaskError`` when it no longer matches.
    """

    def scan_tasks(self) -> list[TaskRecord]: ...

    def generate_task_id(self, task: TaskRecord) -> str: ...

    def mark_task_complete(
        self, task: TaskRecord, completion_date: date | None = None
    ) -> int: ...

    def mark_task_incomplete(self, task: TaskRecord) -> int: ...

    def update_task_metadata(
        self, task: TaskRecord, changes: MetadataChanges
    ) -> None: ...

    def append_new_task(self, task: TaskRecord) -> SourceOrigin: ...

    def has_file_changed(
        self, task: TaskRecord, since: datetime | None = None
    ) -> bool: ...
