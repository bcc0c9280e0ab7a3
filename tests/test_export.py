"""Tests for rendering TaskRecords as task lines.

Covers:
- Token order: title, priority, start, scheduled, due, done, tags
- Completion date only rendered for completed tasks
- Rendered lines are tagged as RenderedLine
- Rendered lines parse back to the same fields
"""

from __future__ import annotations

from datetime import date

from vault_task_sync.sources.export import (
    RenderedLine,
    render_task_line,
    render_tasks,
)
from vault_task_sync.sources.markdown import parse_task_line
from vault_task_sync.sync.models import Priority, TaskRecord


class TestRenderTaskLine:
    def test_minimal(self):
        line = render_task_line(TaskRecord(title="Buy milk"))
        assert line == "- [ ] Buy milk"
        assert isinstance(line, RenderedLine)

    def test_token_order(self):
        task = TaskRecord(
            title="Water plants",
            priority=Priority.HIGH,
            start_date=date(2024, 1, 10),
            scheduled_date=date(2024, 1, 15),
            due_date=date(2024, 1, 20),
            is_completed=True,
            completion_date=date(2024, 1, 18),
            tags=("home", "#garden"),
        )
        assert render_task_line(task) == (
            "- [x] Water plants ⏫ 🛫 2024-01-10 ⏳ 2024-01-15 "
            "📅 2024-01-20 ✅ 2024-01-18 #home #garden"
        )

    def test_completion_date_skipped_when_open(self):
        task = TaskRecord(title="Task", completion_date=date(2024, 1, 18))
        assert render_task_line(task) == "- [ ] Task"

    def test_parses_back(self):
        task = TaskRecord(
            title="Pay rent",
            priority=Priority.MEDIUM,
            due_date=date(2024, 2, 1),
            tags=("finance",),
        )
        parsed = parse_task_line(str(render_task_line(task)), "a.md", 1)
        assert parsed.title == task.title
        assert parsed.priority is Priority.MEDIUM
        assert parsed.due_date == task.due_date
        assert parsed.tags == task.tags


class TestRenderTasks:
    def test_one_line_per_task(self):
        text = render_tasks([TaskRecord(title="A"), TaskRecord(title="B")])
        assert text == "- [ ] A\n- [ ] B"
