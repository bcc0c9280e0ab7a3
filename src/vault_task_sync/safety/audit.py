"""Append-only, human-readable trail of every vault modification.

Each modification is written as one header line plus the affected line
before and after the change::

    [2026-10-18T09:30:00.123456+00:00] FILE_MODIFY action=complete file=Inbox.md line=3
      BEFORE: - [ ] Buy milk 📅 2024-01-20 #errand
      AFTER:  - [x] Buy milk 📅 2024-01-20 ✅ 2026-10-18 #errand

Once the log grows past ``max_bytes`` it is renamed to a timestamped
archive next to it and a fresh log is started; archives are never deleted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog:
    """Append modification records to ``log_path``.

    Args:
        log_path: Path of the active audit log.
        max_bytes: Size that triggers rotation.
        now: Clock, injectable for tests.
    """

    def __init__(
        self,
        log_path: Path,
        max_bytes: int = DEFAULT_MAX_BYTES,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.log_path = log_path
        self.max_bytes = max_bytes
        self._now = now
        self._lock = threading.Lock()

    def log(self, message: str) -> None:
        """Append a single timestamped message."""
        self._append([f"[{self._now().isoformat()}] {message}"])

    def log_file_modification(
        self,
        action: str,
        file_path: str,
        line_number: int,
        before: str,
        after: str,
    ) -> None:
        """Record one line-level change with its before/after content."""
        self._append(
            [
                f"[{self._now().isoformat()}] FILE_MODIFY "
                f"action={action} file={file_path} line={line_number}",
                f"  BEFORE: {before}",
                f"  AFTER:  {after}",
            ]
        )

    def archives(self) -> list[Path]:
        """Rotated archives, oldest first."""
        pattern = f"{self.log_path.stem}.*{self.log_path.suffix}"
        return sorted(
            p
            for p in self.log_path.parent.glob(pattern)
            if p != self.log_path
        )

    def _append(self, lines: list[str]) -> None:
        with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate_if_needed()
            with open(self.log_path, "a", encoding="utf-8") as fh:
                for line in lines:
                    fh.write(line + "\n")

    def _rotate_if_needed(self) -> None:
        try:
            size = self.log_path.stat().st_size
        except FileNotFoundError:
            return
        if size < self.max_bytes:
            return

        stamp = self._now().strftime("%Y%m%dT%H%M%S%f")
        archive = self.log_path.with_name(
            f"{self.log_path.stem}.{stamp}{self.log_path.suffix}"
        )
        counter = 1
        while archive.exists():
            archive = self.log_path.with_name(
                f"{self.log_path.stem}.{stamp}-{counter}{self.log_path.suffix}"
            )
            counter += 1
        self.log_path.rename(archive)
        logger.info("Rotated audit log to %s", archive)
