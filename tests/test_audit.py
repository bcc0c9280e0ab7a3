"""Tests for the append-only audit log.

Covers:
- File modification records carry action, file, line and before/after text
- Plain messages are timestamped
- Rotation archives the log once it passes max_bytes
- Archives are never deleted
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from vault_task_sync.safety.audit import AuditLog

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def _log(tmp_path: Path, **kwargs) -> AuditLog:
    return AuditLog(tmp_path / "logs" / "audit.log", now=lambda: NOW, **kwargs)


class TestRecords:
    def test_file_modification(self, tmp_path: Path):
        audit = _log(tmp_path)
        audit.log_file_modification(
            "complete",
            "Inbox.md",
            3,
            "- [ ] Buy milk #errand",
            "- [x] Buy milk ✅ 2026-10-18 #errand",
        )
        assert audit.log_path.read_text(encoding="utf-8").splitlines() == [
            "[2026-10-18T09:30:00+00:00] FILE_MODIFY "
            "action=complete file=Inbox.md line=3",
            "  BEFORE: - [ ] Buy milk #errand",
            "  AFTER:  - [x] Buy milk ✅ 2026-10-18 #errand",
        ]

    def test_message_appended(self, tmp_path: Path):
        audit = _log(tmp_path)
        audit.log("first")
        audit.log("second")
        assert audit.log_path.read_text(encoding="utf-8") == (
            "[2026-10-18T09:30:00+00:00] first\n"
            "[2026-10-18T09:30:00+00:00] second\n"
        )


class TestRotation:
    def test_rotates_past_max_bytes(self, tmp_path: Path):
        audit = _log(tmp_path, max_bytes=60)
        audit.log("x" * 80)
        audit.log("after rotation")

        archives = audit.archives()
        assert len(archives) == 1
        assert "x" * 80 in archives[0].read_text(encoding="utf-8")
        assert audit.log_path.read_text(encoding="utf-8") == (
            "[2026-10-18T09:30:00+00:00] after rotation\n"
        )

    def test_archives_are_kept(self, tmp_path: Path):
        audit = _log(tmp_path, max_bytes=60)
        for n in range(4):
            audit.log(f"{n}" * 80)

        assert len(audit.archives()) == 3
        assert audit.log_path.exists()

    def test_no_archives_below_limit(self, tmp_path: Path):
        audit = _log(tmp_path)
        audit.log("small")
        assert audit.archives() == []
