"""The ``TaskDestination`` capability consumed by the sync orchestrator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..sync.models import TaskRecord


@runtime_checkable
class TaskDestination(Protocol):
    """Structured task store kept in sync from the vault.

    Calls other than ``request_access`` raise ``DestinationAccessError``
    when access was never granted, and ``DestinationError`` (or
    ``TaskNotFoundError``) for failures scoped to a single task.
    """

    def request_access(self) -> bool: ...

    def fetch_all_tasks(self) -> list[TaskRecord]: ...

    def get_available_lists(self) -> list[str]: ...

    def create_task(self, task: TaskRecord, list_name: str) -> str: ...

    def update_task(self, task_id: str, task: TaskRecord) -> None: ...

    def move_task(self, task_id: str, list_name: str) -> None: ...

    def delete_task(self, task_id: str) -> None: ...

    def refresh(self) -> None: ...
