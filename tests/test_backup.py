"""Tests for pre-write file backups.

Covers:
- Backup names encode the vault-relative path and the time taken
- Same-named files in different folders never collide
- Backups taken within the same instant get a counter suffix
- Count retention keeps the newest copies
- Age retention drops old copies but never the one just taken
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from vault_task_sync.safety.backup import FileBackupService


class Clock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def _note(vault: Path, rel: str, text: str = "- [ ] Task\n") -> Path:
    path = vault / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _service(tmp_path: Path, clock: Clock, **kwargs) -> FileBackupService:
    return FileBackupService(
        tmp_path / "backups", vault_root=tmp_path / "vault", now=clock, **kwargs
    )


class TestBackupFile:
    def test_name_and_content(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 18, 9, 30, 0, 123456))
        path = _note(tmp_path / "vault", "Projects/Work.md", "original\n")
        backup = _service(tmp_path, clock).backup_file(path)

        assert backup.name == "Projects__Work.20261018T093000123456.md"
        assert backup.read_text(encoding="utf-8") == "original\n"

    def test_same_instant_gets_counter(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 18, 9, 30))
        path = _note(tmp_path / "vault", "Inbox.md")
        service = _service(tmp_path, clock)
        first = service.backup_file(path)
        second = service.backup_file(path)

        assert first != second
        assert second.name == "Inbox.20261018T093000000000-1.md"
        assert len(service.list_backups(path)) == 2

    def test_same_name_in_different_folders(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 18, 9, 30))
        vault = tmp_path / "vault"
        a = _note(vault, "A/Note.md")
        b = _note(vault, "B/Note.md")
        service = _service(tmp_path, clock)
        service.backup_file(a)
        service.backup_file(b)

        assert len(service.list_backups(a)) == 1
        assert len(service.list_backups(b)) == 1

    def test_list_backups_without_directory(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 18))
        path = _note(tmp_path / "vault", "Inbox.md")
        assert _service(tmp_path, clock).list_backups(path) == []


class TestRetention:
    def test_count_limit_keeps_newest(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 18, 9, 0))
        path = _note(tmp_path / "vault", "Inbox.md")
        service = _service(tmp_path, clock, max_per_file=3)

        taken = []
        for _ in range(5):
            taken.append(service.backup_file(path))
            clock.advance(minutes=1)

        remaining = [p for _, p in service.list_backups(path)]
        assert remaining == taken[2:]

    def test_age_limit(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 1, 9, 0))
        path = _note(tmp_path / "vault", "Inbox.md")
        service = _service(tmp_path, clock, max_age_days=7)

        old = service.backup_file(path)
        clock.advance(days=10)
        new = service.backup_file(path)

        assert not old.exists()
        assert [p for _, p in service.list_backups(path)] == [new]

    def test_new_backup_never_pruned(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 18, 9, 0))
        path = _note(tmp_path / "vault", "Inbox.md")
        service = _service(tmp_path, clock, max_per_file=1, max_age_days=0)

        service.backup_file(path)
        clock.advance(seconds=1)
        newest = service.backup_file(path)
        assert [p for _, p in service.list_backups(path)] == [newest]

    def test_prune_reports_removed(self, tmp_path: Path):
        clock = Clock(datetime(2026, 10, 1))
        path = _note(tmp_path / "vault", "Inbox.md")
        service = _service(tmp_path, clock)
        old = service.backup_file(path)
        clock.advance(days=30)

        assert service.prune(path) == [old]
