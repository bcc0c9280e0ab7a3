"""Serialize a ``TaskRecord`` into a fresh task line.

This is for export and diagnostics only.  Rendered lines are tagged with
``RenderedLine`` and the vault write path refuses them, so a reconstructed
line can never replace a line that is already in the vault.
"""

from __future__ import annotations

from ..sync.models import Priority, TaskRecord
from .syntax import (
    DONE_SYMBOL,
    DUE_SYMBOL,
    PRIORITY_SYMBOLS,
    SCHEDULED_SYMBOL,
    START_SYMBOL,
)


class RenderedLine(str):
    """A task line built from parsed fields rather than read from disk."""


def render_task_line(task: TaskRecord) -> RenderedLine:
    """Return ``task`` in inline-task syntax.

    Token order: title, priority, start, scheduled, due, done, tags.
    Recurrence rules are not modeled and are never rendered.
    """
    parts = [f"- [{'x' if task.is_completed else ' '}]", task.title]
    if task.priority is not Priority.NONE:
        parts.append(PRIORITY_SYMBOLS[task.priority])
    if task.start_date:
        parts.append(f"{START_SYMBOL} {task.start_date.isoformat()}")
    if task.scheduled_date:
        parts.append(f"{SCHEDULED_SYMBOL} {task.scheduled_date.isoformat()}")
    if task.due_date:
        parts.append(f"{DUE_SYMBOL} {task.due_date.isoformat()}")
    if task.is_completed and task.completion_date:
        parts.append(f"{DONE_SYMBOL} {task.completion_date.isoformat()}")
    parts.extend(f"#{tag.lstrip('#')}" for tag in task.tags)
    return RenderedLine(" ".join(parts))


def render_tasks(tasks: list[TaskRecord]) -> str:
    """Render several tasks as a markdown checklist."""
    return "\n".join(render_task_line(task) for task in tasks)
