"""Shared pytest fixtures for vault-task-sync tests."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from pathlib import Path

import pytest

from vault_task_sync.config_schema import SyncSettings
from vault_task_sync.errors import (
    DestinationAccessError,
    DestinationError,
    TaskNotFoundError,
)
from vault_task_sync.safety.audit import AuditLog
from vault_task_sync.safety.backup import FileBackupService
from vault_task_sync.sources.markdown import MarkdownTaskSource
from vault_task_sync.sync.models import DestinationOrigin, TaskRecord

FIXED_TODAY = date(2026, 10, 18)


class FakeDestination:
    """In-memory ``TaskDestination`` for testing.

    Tasks are stored as ``TaskRecord``s keyed by ID.  Failure injection:

    - ``grant_access = False`` makes ``request_access`` refuse.
    - ``fail_on`` maps a method name to the exception it raises.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, TaskRecord] = {}
        self.lists: list[str] = ["Reminders"]
        self.grant_access = True
        self.fail_on: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self._granted = False

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail_on:
            raise self.fail_on[method]

    def _require_access(self) -> None:
        if not self._granted:
            raise DestinationAccessError("access not granted")

    # -- protocol ---------------------------------------------------------

    def request_access(self) -> bool:
        self._granted = self.grant_access
        return self._granted

    def refresh(self) -> None:
        self._require_access()
        self._maybe_fail("refresh")

    def fetch_all_tasks(self) -> list[TaskRecord]:
        self._require_access()
        self._maybe_fail("fetch_all_tasks")
        return list(self.tasks.values())

    def get_available_lists(self) -> list[str]:
        self._require_access()
        return list(self.lists)

    def create_task(self, task: TaskRecord, list_name: str) -> str:
        self._require_access()
        self._maybe_fail("create_task")
        task_id = uuid.uuid4().hex
        self.tasks[task_id] = task.model_copy(
            update={
                "origin": DestinationOrigin(
                    task_id=task_id, list_name=list_name
                )
            }
        )
        if list_name not in self.lists:
            self.lists.append(list_name)
        self.calls.append(("create", task_id, list_name))
        return task_id

    def update_task(self, task_id: str, task: TaskRecord) -> None:
        self._require_access()
        self._maybe_fail("update_task")
        current = self.tasks.get(task_id)
        if current is None:
            raise TaskNotFoundError(task_id)
        self.tasks[task_id] = task.model_copy(update={"origin": current.origin})
        self.calls.append(("update", task_id))

    def move_task(self, task_id: str, list_name: str) -> None:
        self._require_access()
        self._maybe_fail("move_task")
        current = self.tasks.get(task_id)
        if current is None:
            raise TaskNotFoundError(task_id)
        self.tasks[task_id] = current.model_copy(
            update={
                "origin": DestinationOrigin(
                    task_id=task_id, list_name=list_name
                )
            }
        )
        self.calls.append(("move", task_id, list_name))

    def delete_task(self, task_id: str) -> None:
        self._require_access()
        self._maybe_fail("delete_task")
        if self.tasks.pop(task_id, None) is None:
            raise TaskNotFoundError(task_id)
        self.calls.append(("delete", task_id))

    # -- test helpers -----------------------------------------------------

    def set_completed(
        self, task_id: str, completed: bool, when: date | None = None
    ) -> None:
        self.tasks[task_id] = self.tasks[task_id].model_copy(
            update={
                "is_completed": completed,
                "completion_date": when if completed else None,
            }
        )

    def only_task(self) -> tuple[str, TaskRecord]:
        assert len(self.tasks) == 1, self.tasks
        return next(iter(self.tasks.items()))


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """An empty vault: a directory with the ``.obsidian`` marker."""
    root = tmp_path / "vault"
    (root / ".obsidian").mkdir(parents=True)
    return root


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def backup_service(vault: Path, data_dir: Path) -> FileBackupService:
    return FileBackupService(
        data_dir / "backups",
        vault_root=vault,
        now=lambda: datetime(2026, 10, 18, 9, 30, 0),
    )


@pytest.fixture
def audit_log(data_dir: Path) -> AuditLog:
    return AuditLog(data_dir / "audit.log")


@pytest.fixture
def source(
    vault: Path, backup_service: FileBackupService, audit_log: AuditLog
) -> MarkdownTaskSource:
    return MarkdownTaskSource(
        vault, backup_service, audit_log, today=lambda: FIXED_TODAY
    )


@pytest.fixture
def destination() -> FakeDestination:
    return FakeDestination()


@pytest.fixture
def settings(vault: Path, data_dir: Path) -> SyncSettings:
    return SyncSettings(vault_path=str(vault), data_dir=str(data_dir))


def write_note(vault: Path, rel_path: str, content: str) -> Path:
    """Write a note into the vault, creating folders as needed."""
    path = vault / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path
