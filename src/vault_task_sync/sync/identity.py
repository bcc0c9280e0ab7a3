"""Content-derived task identity and change detection.

``generate_task_id`` answers "is this the same task?" and deliberately
ignores position, completion state and notes, so a task keeps its ID when
it is moved within its file or ticked off.  ``content_hash`` answers "has
this task changed since it was last synchronized?" and covers every
mutable field.

Bump ``ID_SCHEME_VERSION`` whenever either function changes its output;
the state store clears all mappings when it loads an older version.
"""

from __future__ import annotations

import base64
import hashlib
from datetime import date

from .models import TaskRecord

ID_SCHEME_VERSION = 1

_FIELD_SEPARATOR = "|"
_TAG_SEPARATOR = ","


def _iso(value: date | None) -> str:
    return value.isoformat() if value else ""


def _sorted_tags(task: TaskRecord) -> str:
    return _TAG_SEPARATOR.join(sorted(task.tags))


def generate_task_id(task: TaskRecord) -> str:
    """Return the stable source ID for *task*.

    The ID is base64 over the UTF-8 encoding of::

        file_path|title|due|start|scheduled|sorted,tags|priority_rank

    Raises:
        ValueError: If *task* has no source origin.
    """
    origin = task.source_origin
    if origin is None:
        raise ValueError(
            f"Task '{task.title}' has no source origin; cannot derive an ID"
        )
    raw = _FIELD_SEPARATOR.join(
        [
            origin.file_path,
            task.title,
            _iso(task.due_date),
            _iso(task.start_date),
            _iso(task.scheduled_date),
            _sorted_tags(task),
            str(int(task.priority)),
        ]
    )
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def content_hash(task: TaskRecord) -> str:
    """SHA-256 hex digest over every synchronized field of *task*."""
    raw = _FIELD_SEPARATOR.join(
        [
            task.title,
            "1" if task.is_completed else "0",
            _iso(task.completion_date),
            _iso(task.due_date),
            _iso(task.start_date),
            _iso(task.scheduled_date),
            str(int(task.priority)),
            _sorted_tags(task),
            task.notes,
        ]
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
