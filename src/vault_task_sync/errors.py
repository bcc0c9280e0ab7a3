"""Exception hierarchy for the vault task sync engine.

Environment-level errors (``ConfigurationError``, ``SyncInProgressError``,
``DestinationAccessError``) abort a run before anything is mutated.
Task-level errors (``StaleTaskError``, ``UnencodableEditError``,
``DestinationError``) are caught by the orchestrator and recorded against
the single task they concern.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every error raised by the sync engine."""


class ConfigurationError(SyncError):
    """The configured vault root is missing, empty or not a vault."""


class SyncInProgressError(SyncError):
    """A sync run was triggered while another run holds the guard."""

    def __init__(self, message: str = "A sync run is already in progress") -> None:
        super().__init__(message)


class StaleTaskError(SyncError):
    """The line captured at scan time no longer matches the file.

    Attributes:
        file_path: Vault-relative path of the file.
        line_number: 1-based line number that was checked.
        expected: Line text captured during the scan.
        found: Line text currently on disk, or ``None`` when the line (or
            the file) no longer exists.
    """

    def __init__(
        self,
        file_path: str,
        line_number: int,
        expected: str,
        found: str | None,
    ) -> None:
        self.file_path = file_path
        self.line_number = line_number
        self.expected = expected
        self.found = found
        if found is None:
            detail = "line no longer exists"
        else:
            detail = "line changed since scan"
        super().__init__(f"{file_path}:{line_number}: {detail}")


class UnsafeWriteError(SyncError):
    """A reconstructed line was handed to the surgical write path."""


class UnencodableEditError(SyncError):
    """An edited line cannot be written back in the file's own encoding.

    Attributes:
        file_path: Vault-relative path of the file.
        line_number: 1-based line number of the edit.
        encoding: Codec the file was read with.
    """

    def __init__(self, file_path: str, line_number: int, encoding: str) -> None:
        self.file_path = file_path
        self.line_number = line_number
        self.encoding = encoding
        super().__init__(
            f"{file_path}:{line_number}: edited line cannot be encoded as {encoding}"
        )


class MissingOriginError(SyncError):
    """A task without a source origin was passed to a source edit."""


class DestinationAccessError(SyncError):
    """The destination store refused or never granted access."""


class DestinationError(SyncError):
    """A single destination call failed."""


class TaskNotFoundError(DestinationError):
    """The destination has no task with the requested identifier."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Destination task not found: {task_id}")
