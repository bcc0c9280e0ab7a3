"""Tests for content-derived task identity and change hashing.

Covers:
- generate_task_id encodes file, title, dates, sorted tags and priority rank
- IDs ignore line number, completion state and notes
- IDs differ across files, titles, dates, tag sets and priorities
- generate_task_id requires a source origin
- content_hash covers completion state, dates and notes
"""

from __future__ import annotations

import base64
from datetime import date

import pytest

from vault_task_sync.sync.identity import content_hash, generate_task_id
from vault_task_sync.sync.models import Priority, SourceOrigin, TaskRecord


def _task(**overrides) -> TaskRecord:
    fields = {
        "title": "Buy milk",
        "due_date": date(2024, 1, 20),
        "tags": ("errand",),
        "origin": SourceOrigin(
            file_path="Inbox.md",
            line_number=3,
            line_text="- [ ] Buy milk 📅 2024-01-20 #errand",
        ),
    }
    fields.update(overrides)
    return TaskRecord(**fields)


def _origin(file_path="Inbox.md", line_number=3) -> SourceOrigin:
    return SourceOrigin(
        file_path=file_path, line_number=line_number, line_text="x"
    )


class TestGenerateTaskId:
    def test_encoding(self):
        task = _task(priority=Priority.HIGH, tags=("b", "a"))
        raw = base64.b64decode(generate_task_id(task)).decode("utf-8")
        assert raw == "Inbox.md|Buy milk|2024-01-20|||a,b|9"

    def test_stable_across_moves_and_completion(self):
        original = _task()
        moved = _task(
            origin=_origin(line_number=40),
            is_completed=True,
            completion_date=date(2024, 1, 21),
            notes="picked up on the way home",
        )
        assert generate_task_id(original) == generate_task_id(moved)

    def test_tag_order_ignored(self):
        assert generate_task_id(_task(tags=("a", "b"))) == generate_task_id(
            _task(tags=("b", "a"))
        )

    def test_differs_by_file(self):
        assert generate_task_id(_task()) != generate_task_id(
            _task(origin=_origin(file_path="Other.md"))
        )

    def test_differs_by_title(self):
        assert generate_task_id(_task()) != generate_task_id(
            _task(title="Buy oat milk")
        )

    @pytest.mark.parametrize(
        "field, value",
        [
            ("due_date", date(2024, 1, 21)),
            ("due_date", None),
            ("start_date", date(2024, 1, 15)),
            ("scheduled_date", date(2024, 1, 18)),
            ("tags", ("errand", "home")),
            ("tags", ()),
            ("priority", Priority.HIGH),
            ("priority", Priority.LOW),
        ],
    )
    def test_differs_by_identity_field(self, field, value):
        """Changing any date, the tag set or the priority yields a new ID."""
        assert generate_task_id(_task()) != generate_task_id(
            _task(**{field: value})
        )

    def test_requires_source_origin(self):
        with pytest.raises(ValueError):
            generate_task_id(TaskRecord(title="Orphan"))


class TestContentHash:
    def test_deterministic(self):
        assert content_hash(_task()) == content_hash(_task())

    def test_ignores_origin(self):
        assert content_hash(_task()) == content_hash(
            _task(origin=_origin(line_number=99))
        )

    def test_sensitive_to_completion(self):
        assert content_hash(_task()) != content_hash(_task(is_completed=True))

    def test_sensitive_to_dates_and_notes(self):
        base = content_hash(_task())
        assert base != content_hash(_task(due_date=date(2024, 1, 21)))
        assert base != content_hash(_task(start_date=date(2024, 1, 1)))
        assert base != content_hash(_task(notes="note"))
