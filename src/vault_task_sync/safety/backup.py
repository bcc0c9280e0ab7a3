"""Pre-write snapshots of vault files with count and age retention.

Backups live in a single directory.  A backup of ``Projects/Work.md`` taken
at 2026-10-18 09:30:00.123456 is named::

    Projects__Work.20261018T093000123456.md

so copies of same-named files in different folders never collide, and the
write time can be read back from the name.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%f"


class FileBackupService:
    """Copy files aside before they are modified and prune old copies.

    Args:
        backup_dir: Directory that receives the copies.
        vault_root: Root used to derive collision-free backup names.
        max_per_file: Maximum number of copies kept per original file.
        max_age_days: Copies older than this are pruned.
        now: Clock, injectable for tests.
    """

    def __init__(
        self,
        backup_dir: Path,
        vault_root: Path | None = None,
        max_per_file: int = 50,
        max_age_days: int = 7,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.backup_dir = backup_dir
        self.vault_root = vault_root
        self.max_per_file = max_per_file
        self.max_age_days = max_age_days
        self._now = now

    def backup_file(self, path: Path) -> Path:
        """Copy *path* into the backup directory, then apply retention.

        Returns:
            Path of the new backup copy.

        Raises:
            OSError: If the copy cannot be written.  Callers must not go on
                to modify the original in that case.
        """
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stem = self._backup_stem(path)
        stamp = self._now().strftime(_TIMESTAMP_FORMAT)
        target = self.backup_dir / f"{stem}.{stamp}{path.suffix}"
        counter = 1
        while target.exists():
            target = self.backup_dir / f"{stem}.{stamp}-{counter}{path.suffix}"
            counter += 1

        shutil.copy2(path, target)
        logger.debug("Backed up %s to %s", path, target)

        self.prune(path, keep=target)
        return target

    def list_backups(self, path: Path) -> list[tuple[datetime, Path]]:
        """Return ``(taken_at, backup_path)`` for *path*, oldest first."""
        if not self.backup_dir.exists():
            return []
        pattern = re.compile(
            rf"^{re.escape(self._backup_stem(path))}\."
            rf"(\d{{8}}T\d{{12}})(?:-\d+)?{re.escape(path.suffix)}$"
        )
        found: list[tuple[datetime, Path]] = []
        for candidate in self.backup_dir.iterdir():
            match = pattern.match(candidate.name)
            if match is None:
                continue
            taken_at = datetime.strptime(match.group(1), _TIMESTAMP_FORMAT)
            found.append((taken_at, candidate))
        found.sort()
        return found

    def prune(self, path: Path, keep: Path | None = None) -> list[Path]:
        """Delete copies of *path* beyond the count or age limit.

        The copy named by *keep* (normally the one just taken) is never
        removed.

        Returns:
            Paths that were deleted.
        """
        backups = self.list_backups(path)
        cutoff = self._now() - timedelta(days=self.max_age_days)
        excess = max(0, len(backups) - self.max_per_file)

        removed: list[Path] = []
        for index, (taken_at, candidate) in enumerate(backups):
            if candidate == keep:
                continue
            if index < excess or taken_at < cutoff:
                try:
                    candidate.unlink()
                except OSError as exc:
                    logger.warning(
                        "Could not prune backup %s: %s", candidate, exc
                    )
                    continue
                removed.append(candidate)

        if removed:
            logger.debug(
                "Pruned %d backups of %s", len(removed), path.name
            )
        return removed

    def _backup_stem(self, path: Path) -> str:
        relative: Path = Path(path.name)
        if self.vault_root is not None:
            try:
                relative = path.resolve().relative_to(
                    self.vault_root.resolve()
                )
            except ValueError:
                pass
        return relative.with_suffix("").as_posix().replace("/", "__")
