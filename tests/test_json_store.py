"""Tests for the JSON file task store.

Covers:
- Access must be requested before any call
- create/update/move/delete persist to disk and round-trip fields
- Lists: defaults first, then lists created by tasks
- Missing tasks raise TaskNotFoundError
- refresh() picks up external edits
- Unreadable store files deny access
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from vault_task_sync.destinations.json_store import JsonTaskStore
from vault_task_sync.errors import DestinationAccessError, TaskNotFoundError
from vault_task_sync.sync.models import Priority, SourceOrigin, TaskRecord

TASK = TaskRecord(
    title="Buy milk",
    due_date=date(2024, 1, 20),
    priority=Priority.MEDIUM,
    tags=("errand",),
    origin=SourceOrigin(file_path="Inbox.md", line_number=1, line_text="x"),
)


@pytest.fixture
def store(tmp_path: Path) -> JsonTaskStore:
    store = JsonTaskStore(tmp_path / "store" / "tasks.json", ["Reminders"])
    assert store.request_access() is True
    return store


def _on_disk(store: JsonTaskStore) -> dict:
    return json.loads(store.path.read_text(encoding="utf-8"))


class TestAccess:
    def test_calls_require_access(self, tmp_path: Path):
        store = JsonTaskStore(tmp_path / "tasks.json")
        with pytest.raises(DestinationAccessError):
            store.fetch_all_tasks()

    def test_empty_store(self, store: JsonTaskStore):
        assert store.fetch_all_tasks() == []
        assert not store.path.exists()

    def test_corrupt_file_denies_access(self, tmp_path: Path):
        path = tmp_path / "tasks.json"
        path.write_text("{broken", encoding="utf-8")
        assert JsonTaskStore(path).request_access() is False


class TestWrites:
    def test_create_round_trip(self, store: JsonTaskStore):
        task_id = store.create_task(TASK, "Errand")

        (record,) = store.fetch_all_tasks()
        assert record.destination_id == task_id
        assert record.list_name == "Errand"
        assert record.title == "Buy milk"
        assert record.due_date == date(2024, 1, 20)
        assert record.priority is Priority.MEDIUM
        assert record.tags == ("errand",)
        assert _on_disk(store)["tasks"][task_id]["list"] == "Errand"

    def test_update(self, store: JsonTaskStore):
        task_id = store.create_task(TASK, "Errand")
        store.update_task(
            task_id,
            TASK.model_copy(
                update={
                    "is_completed": True,
                    "completion_date": date(2024, 1, 21),
                }
            ),
        )
        (record,) = store.fetch_all_tasks()
        assert record.is_completed is True
        assert record.completion_date == date(2024, 1, 21)
        assert record.list_name == "Errand"

    def test_move(self, store: JsonTaskStore):
        task_id = store.create_task(TASK, "Errand")
        store.move_task(task_id, "Shopping")
        assert store.fetch_all_tasks()[0].list_name == "Shopping"
        assert "Shopping" in store.get_available_lists()

    def test_delete(self, store: JsonTaskStore):
        task_id = store.create_task(TASK, "Errand")
        store.delete_task(task_id)
        assert store.fetch_all_tasks() == []
        assert _on_disk(store)["tasks"] == {}

    def test_missing_task(self, store: JsonTaskStore):
        with pytest.raises(TaskNotFoundError):
            store.update_task("nope", TASK)
        with pytest.raises(TaskNotFoundError):
            store.move_task("nope", "Errand")
        with pytest.raises(TaskNotFoundError):
            store.delete_task("nope")


class TestLists:
    def test_defaults_first(self, store: JsonTaskStore):
        store.create_task(TASK, "Errand")
        assert store.get_available_lists() == ["Reminders", "Errand"]


class TestRefresh:
    def test_external_edit_visible_after_refresh(self, store: JsonTaskStore):
        task_id = store.create_task(TASK, "Errand")
        data = _on_disk(store)
        data["tasks"][task_id]["completed"] = True
        store.path.write_text(json.dumps(data), encoding="utf-8")

        assert store.fetch_all_tasks()[0].is_completed is False
        store.refresh()
        assert store.fetch_all_tasks()[0].is_completed is True

    def test_unknown_priority_falls_back(self, store: JsonTaskStore):
        task_id = store.create_task(TASK, "Errand")
        data = _on_disk(store)
        data["tasks"][task_id]["priority"] = 3
        store.path.write_text(json.dumps(data), encoding="utf-8")
        store.refresh()
        assert store.fetch_all_tasks()[0].priority is Priority.NONE
