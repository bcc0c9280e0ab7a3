"""Inline task grammar shared by the parser, the line edits and the exporter.

A task line looks like::

    - [ ] Water plants ⏫ 🔁 every week 🛫 2024-01-10 📅 2024-01-20 #home

The checkbox status is a space (open) or ``x``/``X`` (done).  Dates are
introduced by their symbol followed by an ISO calendar date.  The
recurrence symbol is recognized but its rule text is never interpreted.
"""

from __future__ import annotations

import re

from ..sync.models import Priority

TASK_RE = re.compile(
    r"^(?P<indent>\ufeff?\s*)(?P<bullet>[-*+])\s\[(?P<status>[ xX])\]\s(?P<rest>.*)$"
)

DUE_SYMBOL = "\U0001f4c5"  # 📅
START_SYMBOL = "\U0001f6eb"  # 🛫
SCHEDULED_SYMBOL = "\u23f3"  # ⏳
DONE_SYMBOL = "\u2705"  # ✅
RECURRENCE_SYMBOL = "\U0001f501"  # 🔁

PRIORITY_SYMBOLS: dict[Priority, str] = {
    Priority.HIGH: "\u23eb",  # ⏫
    Priority.MEDIUM: "\U0001f53c",  # 🔼
    Priority.LOW: "\U0001f53d",  # 🔽
}
SYMBOL_PRIORITIES: dict[str, Priority] = {
    symbol: priority for priority, symbol in PRIORITY_SYMBOLS.items()
}

_VARIATION = "\ufe0f?"
_ISO_DATE = r"\d{4}-\d{2}-\d{2}"


def date_token_re(symbol: str) -> re.Pattern[str]:
    """Match ``<symbol> YYYY-MM-DD`` with its leading whitespace.

    Groups: ``lead`` (whitespace before the symbol) and ``date``.
    """
    return re.compile(
        rf"(?P<lead>\s*){re.escape(symbol)}{_VARIATION}\s*(?P<date>{_ISO_DATE})"
    )


DUE_RE = date_token_re(DUE_SYMBOL)
START_RE = date_token_re(START_SYMBOL)
SCHEDULED_RE = date_token_re(SCHEDULED_SYMBOL)
DONE_RE = date_token_re(DONE_SYMBOL)

PRIORITY_RE = re.compile(
    r"(?P<lead>\s*)(?P<symbol>"
    + "|".join(re.escape(s) for s in PRIORITY_SYMBOLS.values())
    + rf"){_VARIATION}"
)

TAG_RE = re.compile(r"(?<!\S)#(?P<tag>[\w-]+(?:/[\w-]+)*)")

BLOCK_REF_RE = re.compile(r"\s\^[A-Za-z0-9-]+\s*$")

# Tags and block references at the very end of a line.  New tokens are
# inserted in front of this run so trailing tags stay trailing.
TRAILING_RE = re.compile(
    r"(?:\s+(?:#[\w-]+(?:/[\w-]+)*|\^[A-Za-z0-9-]+))*\s*$"
)
