"""Local structured task store persisted as a single JSON document.

Layout of the store file::

    {
      "version": 1,
      "lists": ["Errand", "Reminders"],
      "tasks": {
        "<id>": {"title": ..., "list": ..., "completed": false, ...}
      }
    }

Every mutating call rewrites the file atomically, so other tools (or a
person with an editor) may change it between calls; ``refresh()`` picks
those changes up.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Sequence
from datetime import date, datetime, timezone
from pathlib import Path

from ..errors import DestinationAccessError, DestinationError, TaskNotFoundError
from ..file_handler import write_file_atomic
from ..sync.models import DestinationOrigin, Priority, TaskRecord

logger = logging.getLogger(__name__)

STORE_VERSION = 1


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class JsonTaskStore:
    """``TaskDestination`` backed by a JSON file.

    Args:
        path: Location of the store file (created on first write).
        default_lists: Lists that always exist, even when empty.
    """

    def __init__(
        self, path: Path, default_lists: Sequence[str] = ()
    ) -> None:
        self.path = path
        self.default_lists = list(default_lists)
        self._data: dict | None = None

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def request_access(self) -> bool:
        """Check the store is readable and writable and load it.

        Returns:
            ``True`` when access is granted.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create task store directory: %s", exc)
            return False
        if not os.access(self.path.parent, os.W_OK):
            logger.error("Task store directory is not writable: %s", self.path.parent)
            return False
        if self.path.exists() and not os.access(self.path, os.R_OK | os.W_OK):
            logger.error("Task store is not readable/writable: %s", self.path)
            return False
        try:
            self._data = self._read()
        except DestinationError as exc:
            logger.error("%s", exc)
            return False
        logger.debug("Access granted to task store %s", self.path)
        return True

    def refresh(self) -> None:
        """Reload the store from disk."""
        self._require_access()
        self._data = self._read()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch_all_tasks(self) -> list[TaskRecord]:
        data = self._require_access()
        try:
            return [
                self._to_record(task_id, record)
                for task_id, record in data["tasks"].items()
            ]
        except (TypeError, ValueError, AttributeError) as exc:
            raise DestinationError(
                f"Task store {self.path} holds a malformed task: {exc}"
            ) from exc

    def get_available_lists(self) -> list[str]:
        data = self._require_access()
        names = list(self.default_lists)
        for name in data["lists"]:
            if name not in names:
                names.append(name)
        return names

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_task(self, task: TaskRecord, list_name: str) -> str:
        data = self._require_access()
        task_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()
        record = self._fields_from(task)
        record.update(list=list_name, created_at=now, modified_at=now)
        data["tasks"][task_id] = record
        if list_name not in data["lists"]:
            data["lists"].append(list_name)
        self._save()
        logger.debug("Created task %s in list '%s'", task_id, list_name)
        return task_id

    def update_task(self, task_id: str, task: TaskRecord) -> None:
        data = self._require_access()
        record = data["tasks"].get(task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        record.update(self._fields_from(task))
        record["modified_at"] = datetime.now(timezone.utc).isoformat()
        self._save()

    def move_task(self, task_id: str, list_name: str) -> None:
        data = self._require_access()
        record = data["tasks"].get(task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        record["list"] = list_name
        record["modified_at"] = datetime.now(timezone.utc).isoformat()
        if list_name not in data["lists"]:
            data["lists"].append(list_name)
        self._save()

    def delete_task(self, task_id: str) -> None:
        data = self._require_access()
        if data["tasks"].pop(task_id, None) is None:
            raise TaskNotFoundError(task_id)
        self._save()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_access(self) -> dict:
        if self._data is None:
            raise DestinationAccessError(
                f"Access to task store {self.path} has not been granted"
            )
        return self._data

    def _read(self) -> dict:
        if not self.path.exists():
            return {"version": STORE_VERSION, "lists": [], "tasks": {}}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise DestinationError(
                f"Task store {self.path} is unreadable: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise DestinationError(
                f"Task store {self.path} has non-dict root"
            )
        data.setdefault("version", STORE_VERSION)
        data.setdefault("lists", [])
        data.setdefault("tasks", {})
        return data

    def _save(self) -> None:
        try:
            write_file_atomic(
                self.path,
                json.dumps(self._data, indent=2, ensure_ascii=False),
            )
        except OSError as exc:
            raise DestinationError(
                f"Could not write task store {self.path}: {exc}"
            ) from exc

    @staticmethod
    def _fields_from(task: TaskRecord) -> dict:
        return {
            "title": task.title,
            "completed": task.is_completed,
            "completion_date": _iso(task.completion_date)
            if task.is_completed
            else None,
            "due_date": _iso(task.due_date),
            "start_date": _iso(task.start_date),
            "scheduled_date": _iso(task.scheduled_date),
            "priority": int(task.priority),
            "tags": list(task.tags),
            "notes": task.notes,
        }

    @staticmethod
    def _to_record(task_id: str, record: dict) -> TaskRecord:
        try:
            priority = Priority(int(record.get("priority", 0)))
        except ValueError:
            priority = Priority.NONE
        return TaskRecord(
            title=record.get("title", ""),
            is_completed=bool(record.get("completed", False)),
            completion_date=_parse_date(record.get("completion_date")),
            due_date=_parse_date(record.get("due_date")),
            start_date=_parse_date(record.get("start_date")),
            scheduled_date=_parse_date(record.get("scheduled_date")),
            priority=priority,
            tags=tuple(record.get("tags") or ()),
            notes=record.get("notes") or "",
            origin=DestinationOrigin(
                task_id=task_id, list_name=record.get("list")
            ),
        )
