"""Minimal line transformations behind the surgical edit protocol.

Every function takes the verbatim task line and returns it with only the
targeted token changed.  None of them rebuild a line from parsed fields.
"""

from __future__ import annotations

import re
from datetime import date

from ..sync.models import (
    Cleared,
    FieldChange,
    MetadataChanges,
    Priority,
    SetTo,
    Unchanged,
)
from .syntax import (
    DONE_RE,
    DONE_SYMBOL,
    DUE_RE,
    DUE_SYMBOL,
    PRIORITY_RE,
    PRIORITY_SYMBOLS,
    START_RE,
    START_SYMBOL,
    TASK_RE,
    TRAILING_RE,
)


def _match_task(line: str) -> re.Match[str]:
    match = TASK_RE.match(line)
    if match is None:
        raise ValueError(f"Not a task line: {line!r}")
    return match


def _set_status(line: str, completed: bool) -> str:
    match = _match_task(line)
    status = match.group("status")
    if completed and status == " ":
        new_status = "x"
    elif not completed and status in "xX":
        new_status = " "
    else:
        return line
    pos = match.start("status")
    return line[:pos] + new_status + line[pos + 1 :]


def insertion_point(line: str) -> int:
    """Index where a new token goes: before trailing tags/block refs."""
    body_start = _match_task(line).start("rest") - 1
    match = TRAILING_RE.search(line, body_start)
    return match.start() if match else len(line)


def _insert_token(line: str, token: str) -> str:
    pos = insertion_point(line)
    return f"{line[:pos]} {token}{line[pos:]}"


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


def mark_complete(line: str, completion_date: date) -> str:
    """Tick the checkbox and add (or re-date) the completion token."""
    line = _set_status(line, True)
    stamp = completion_date.isoformat()
    existing = DONE_RE.search(line)
    if existing is not None:
        return line[: existing.start("date")] + stamp + line[existing.end("date") :]
    return _insert_token(line, f"{DONE_SYMBOL} {stamp}")


def mark_incomplete(line: str) -> str:
    """Untick the checkbox and drop the completion token."""
    line = _set_status(line, False)
    return DONE_RE.sub("", line, count=1)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _apply_date_change(
    line: str,
    pattern: re.Pattern[str],
    symbol: str,
    change: FieldChange,
) -> str:
    match change:
        case Unchanged():
            return line
        case Cleared():
            return pattern.sub("", line, count=1)
        case SetTo(value=date() as value):
            stamp = value.isoformat()
            existing = pattern.search(line)
            if existing is not None:
                return (
                    line[: existing.start("date")]
                    + stamp
                    + line[existing.end("date") :]
                )
            return _insert_token(line, f"{symbol} {stamp}")
        case SetTo(value=value):
            raise ValueError(f"Expected a date, got {value!r}")
    raise TypeError(f"Unknown field change: {change!r}")


def _apply_priority_change(line: str, change: FieldChange) -> str:
    match change:
        case Unchanged():
            return line
        case Cleared() | SetTo(value=Priority.NONE):
            return PRIORITY_RE.sub("", line, count=1)
        case SetTo(value=Priority() as priority):
            symbol = PRIORITY_SYMBOLS[priority]
            existing = PRIORITY_RE.search(line)
            if existing is not None:
                return (
                    line[: existing.start("symbol")]
                    + symbol
                    + line[existing.end() :]
                )
            return _insert_token(line, symbol)
        case SetTo(value=value):
            raise ValueError(f"Expected a Priority, got {value!r}")
    raise TypeError(f"Unknown field change: {change!r}")


def apply_metadata_changes(line: str, changes: MetadataChanges) -> str:
    """Apply every field of *changes* to *line*, all or nothing."""
    _match_task(line)
    line = _apply_date_change(line, DUE_RE, DUE_SYMBOL, changes.due_date)
    line = _apply_date_change(
        line, START_RE, START_SYMBOL, changes.start_date
    )
    return _apply_priority_change(line, changes.priority)
