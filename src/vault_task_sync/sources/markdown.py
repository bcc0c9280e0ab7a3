"""Markdown vault task source.

Scans a vault directory for inline tasks and edits them in place using the
surgical edit protocol:

1. re-read the line at the recorded position,
2. compare it character-for-character with the line captured at scan time
   and raise ``StaleTaskError`` on any difference,
3. apply a minimal token-level transformation (see ``edits``),
4. check the result encodes in the file's own codec (``UnencodableEditError``
   otherwise),
5. back the file up, write it atomically, then append an audit record.

No method here rebuilds an existing line from parsed fields.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from collections.abc import Callable, Iterator, Sequence
from datetime import date, datetime
from pathlib import Path

from ..errors import (
    MissingOriginError,
    StaleTaskError,
    UnencodableEditError,
    UnsafeWriteError,
)
from ..file_handler import (
    read_file_with_encoding,
    split_lines,
    strip_cr,
    write_file_atomic,
)
from ..safety.audit import AuditLog
from ..safety.backup import FileBackupService
from ..sync.identity import generate_task_id
from ..sync.models import (
    MetadataChanges,
    Priority,
    SourceOrigin,
    TaskRecord,
)
from . import edits
from .export import RenderedLine, render_task_line
from .syntax import (
    BLOCK_REF_RE,
    DONE_RE,
    DUE_RE,
    PRIORITY_RE,
    RECURRENCE_SYMBOL,
    SCHEDULED_RE,
    START_RE,
    SYMBOL_PRIORITIES,
    TAG_RE,
    TASK_RE,
)

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_FOLDERS = (".obsidian", ".git", ".trash")

_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_date(pattern: re.Pattern[str], text: str) -> tuple[date | None, re.Match[str] | None]:
    for match in pattern.finditer(text):
        try:
            return date.fromisoformat(match.group("date")), match
        except ValueError:
            continue
    return None, None


def parse_task_line(
    line: str, file_path: str, line_number: int
) -> TaskRecord | None:
    """Parse one line (without terminator) into a ``TaskRecord``.

    Returns ``None`` for lines that are not tasks or whose title is empty.
    """
    match = TASK_RE.match(line)
    if match is None:
        return None

    rest = match.group("rest")
    is_completed = match.group("status") in "xX"

    due_date, due_match = _parse_date(DUE_RE, rest)
    start_date, start_match = _parse_date(START_RE, rest)
    scheduled_date, scheduled_match = _parse_date(SCHEDULED_RE, rest)
    done_date, done_match = _parse_date(DONE_RE, rest)

    priority_match = PRIORITY_RE.search(rest)
    priority = (
        SYMBOL_PRIORITIES[priority_match.group("symbol")]
        if priority_match
        else Priority.NONE
    )

    tags: list[str] = []
    for tag_match in TAG_RE.finditer(rest):
        tag = tag_match.group("tag")
        if tag not in tags:
            tags.append(tag)

    # Blank out recognized tokens so the title is what remains.
    chars = list(rest)
    for token in (due_match, start_match, scheduled_match, done_match):
        if token is not None:
            for i in range(token.start(), token.end()):
                chars[i] = " "
    title_text = "".join(chars)
    has_recurrence = RECURRENCE_SYMBOL in title_text
    if has_recurrence:
        title_text = title_text.split(RECURRENCE_SYMBOL, 1)[0]
    title_text = PRIORITY_RE.sub(" ", title_text)
    title_text = TAG_RE.sub(" ", title_text)
    title_text = BLOCK_REF_RE.sub(" ", title_text)
    title = _WHITESPACE_RE.sub(" ", title_text).strip()
    if not title:
        return None

    return TaskRecord(
        title=title,
        is_completed=is_completed,
        completion_date=done_date if is_completed else None,
        due_date=due_date,
        start_date=start_date,
        scheduled_date=scheduled_date,
        priority=priority,
        tags=tuple(tags),
        has_recurrence=has_recurrence,
        origin=SourceOrigin(
            file_path=file_path, line_number=line_number, line_text=line
        ),
    )


# ---------------------------------------------------------------------------
# Source adapter
# ---------------------------------------------------------------------------


class MarkdownTaskSource:
    """``TaskSource`` backed by a directory of markdown files.

    Args:
        vault_root: Root directory of the vault.
        backup: Backup service called before every write.
        audit: Audit log written after every write.
        task_files_pattern: Glob-style filter on vault-relative paths.
        excluded_folders: Folder names, or vault-relative folder paths,
            that are never scanned.
        inbox_file_path: Vault-relative file that receives appended tasks.
        today: Clock used for completion dates, injectable for tests.
    """

    def __init__(
        self,
        vault_root: Path,
        backup: FileBackupService,
        audit: AuditLog,
        task_files_pattern: str = "**/*.md",
        excluded_folders: Sequence[str] = DEFAULT_EXCLUDED_FOLDERS,
        inbox_file_path: str = "Inbox.md",
        today: Callable[[], date] = date.today,
    ) -> None:
        self.vault_root = vault_root
        self.backup = backup
        self.audit = audit
        self.task_files_pattern = task_files_pattern
        self.excluded_folders = [
            folder.strip("/") for folder in excluded_folders if folder.strip("/")
        ]
        self.inbox_file_path = inbox_file_path
        self._today = today
        self._known_mtimes: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan_tasks(self) -> list[TaskRecord]:
        """Parse every task in every matching file.

        Raises:
            OSError: If a matching file cannot be read.  A partial scan
                would look like deleted tasks, so it is never returned.
        """
        tasks: list[TaskRecord] = []
        self._known_mtimes.clear()
        for path, rel_path in self._iter_task_files():
            content, _ = read_file_with_encoding(path)
            self._known_mtimes[rel_path] = path.stat().st_mtime_ns
            for line_number, raw in enumerate(split_lines(content), start=1):
                line, _ = strip_cr(raw)
                task = parse_task_line(line, rel_path, line_number)
                if task is not None:
                    tasks.append(task)
        logger.debug(
            "Scanned %d tasks in %d files under %s",
            len(tasks),
            len(self._known_mtimes),
            self.vault_root,
        )
        return tasks

    def _iter_task_files(self) -> Iterator[tuple[Path, str]]:
        for dirpath, dirnames, filenames in os.walk(self.vault_root):
            current = Path(dirpath)
            rel_dir = current.relative_to(self.vault_root).as_posix()
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not d.startswith(".")
                and not self._is_excluded(
                    d if rel_dir == "." else f"{rel_dir}/{d}"
                )
            )
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                rel_path = (
                    filename if rel_dir == "." else f"{rel_dir}/{filename}"
                )
                if self._matches_pattern(rel_path):
                    yield current / filename, rel_path

    def _is_excluded(self, rel_dir: str) -> bool:
        parts = rel_dir.split("/")
        for folder in self.excluded_folders:
            if "/" in folder:
                if rel_dir == folder or rel_dir.startswith(folder + "/"):
                    return True
            elif folder in parts:
                return True
        return False

    def _matches_pattern(self, rel_path: str) -> bool:
        pattern = self.task_files_pattern
        if fnmatch.fnmatch(rel_path, pattern):
            return True
        return pattern.startswith("**/") and fnmatch.fnmatch(
            rel_path, pattern[3:]
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def generate_task_id(self, task: TaskRecord) -> str:
        return generate_task_id(task)

    # ------------------------------------------------------------------
    # Surgical edits
    # ------------------------------------------------------------------

    def mark_task_complete(
        self, task: TaskRecord, completion_date: date | None = None
    ) -> int:
        """Tick the task and stamp its completion date.

        Returns:
            Number of lines inserted into the file (always 0; recurrence
            rules are preserved, not expanded).
        """
        when = completion_date or self._today()
        self._edit_line(
            task, "complete", lambda line: edits.mark_complete(line, when)
        )
        return 0

    def mark_task_incomplete(self, task: TaskRecord) -> int:
        """Untick the task and drop its completion date."""
        self._edit_line(task, "uncomplete", edits.mark_incomplete)
        return 0

    def update_task_metadata(
        self, task: TaskRecord, changes: MetadataChanges
    ) -> None:
        """Apply a tri-state change set to the task's date/priority tokens."""
        if not changes.has_changes:
            return
        self._edit_line(
            task,
            "update_metadata",
            lambda line: edits.apply_metadata_changes(line, changes),
        )

    def _edit_line(
        self,
        task: TaskRecord,
        action: str,
        transform: Callable[[str], str],
    ) -> str:
        origin = task.source_origin
        if origin is None:
            raise MissingOriginError(
                f"Task '{task.title}' has no source origin"
            )

        path = self.vault_root / origin.file_path
        if not path.is_file():
            raise StaleTaskError(
                origin.file_path, origin.line_number, origin.line_text, None
            )

        content, encoding = read_file_with_encoding(path)
        lines = split_lines(content)
        index = origin.line_number - 1
        if index >= len(lines):
            raise StaleTaskError(
                origin.file_path, origin.line_number, origin.line_text, None
            )

        current, line_ending = strip_cr(lines[index])
        if current != origin.line_text:
            raise StaleTaskError(
                origin.file_path,
                origin.line_number,
                origin.line_text,
                current,
            )

        updated = transform(current)
        if isinstance(updated, RenderedLine):
            raise UnsafeWriteError(
                f"Refusing to replace {origin.file_path}:{origin.line_number} "
                "with a reconstructed line"
            )
        if updated == current:
            logger.debug(
                "No change needed for %s:%d",
                origin.file_path,
                origin.line_number,
            )
            return current

        try:
            updated.encode(encoding)
        except UnicodeEncodeError:
            raise UnencodableEditError(
                origin.file_path, origin.line_number, encoding
            ) from None

        self.backup.backup_file(path)
        lines[index] = updated + line_ending
        write_file_atomic(path, "\n".join(lines), encoding)
        self._known_mtimes[origin.file_path] = path.stat().st_mtime_ns

        self.audit.log_file_modification(
            action, origin.file_path, origin.line_number, current, updated
        )
        logger.info(
            "%s %s:%d", action, origin.file_path, origin.line_number
        )
        return updated

    # ------------------------------------------------------------------
    # Appending
    # ------------------------------------------------------------------

    def append_new_task(self, task: TaskRecord) -> SourceOrigin:
        """Append *task* as a new line at the end of the inbox file.

        Existing lines are left untouched; the inbox is created if missing.

        Returns:
            Origin of the appended line.
        """
        path = self.vault_root / self.inbox_file_path
        line = str(render_task_line(task))

        if path.exists():
            content, encoding = read_file_with_encoding(path)
        else:
            content, encoding = "", "utf-8"

        newline = "\r\n" if "\r\n" in content else "\n"
        if content and not content.endswith("\n"):
            content += newline
        line_number = content.count("\n") + 1
        try:
            line.encode(encoding)
        except UnicodeEncodeError:
            raise UnencodableEditError(
                self.inbox_file_path, line_number, encoding
            ) from None

        if path.exists():
            self.backup.backup_file(path)
        write_file_atomic(path, content + line + newline, encoding)
        self._known_mtimes[self.inbox_file_path] = path.stat().st_mtime_ns

        self.audit.log_file_modification(
            "append", self.inbox_file_path, line_number, "", line
        )
        logger.info(
            "Appended task '%s' to %s:%d",
            task.title,
            self.inbox_file_path,
            line_number,
        )
        return SourceOrigin(
            file_path=self.inbox_file_path,
            line_number=line_number,
            line_text=line,
        )

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def has_file_changed(
        self, task: TaskRecord, since: datetime | None = None
    ) -> bool:
        """Return True if the task's file was modified externally.

        With *since*, compares the file's mtime to that moment; otherwise
        compares it to the mtime recorded at the last scan (or after this
        adapter's own last write).
        """
        origin = task.source_origin
        if origin is None:
            raise MissingOriginError(
                f"Task '{task.title}' has no source origin"
            )
        path = self.vault_root / origin.file_path
        try:
            mtime_ns = path.stat().st_mtime_ns
        except FileNotFoundError:
            return True
        if since is not None:
            return mtime_ns / 1e9 > since.timestamp()
        known = self._known_mtimes.get(origin.file_path)
        return known is None or mtime_ns != known
