"""Safety services invoked before and after every vault mutation."""

from .audit import AuditLog
from .backup import FileBackupService

__all__ = ["AuditLog", "FileBackupService"]
