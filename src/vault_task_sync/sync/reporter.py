"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``format_history`` -- one line per logged run.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from .models import SyncAction, TaskActionResult

if TYPE_CHECKING:
    from .history import SyncLogEntry
    from .models import SyncReport

_SECTION_TITLES: list[tuple[SyncAction, str]] = [
    (SyncAction.CREATE, "Created"),
    (SyncAction.UPDATE, "Updated"),
    (SyncAction.DELETE, "Deleted"),
    (SyncAction.COMPLETE, "Completed in vault"),
    (SyncAction.UNCOMPLETE, "Reopened in vault"),
    (SyncAction.UNLINK, "Unlinked"),
]


def _describe(result: TaskActionResult) -> str:
    title = result.task_title or "(removed task)"
    if result.file_path:
        return f"{title} ({result.file_path})"
    return title


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped tasks are summarised by count only to avoid excessive output.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Sync report"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append(f"Duration: {report.duration_seconds:.2f}s")
    lines.append("")

    if report.error:
        lines.append(f"Sync failed: {report.error}")
        return "\n".join(lines).rstrip()

    counts = report.counts()
    lines.append(
        f"{counts['created']} created, {counts['updated']} updated, "
        f"{counts['deleted']} deleted, "
        f"{counts['completions_written_back']} completions written back, "
        f"{counts['errors']} errors"
    )
    lines.append("")

    for action, title in _SECTION_TITLES:
        matching = [
            r for r in report.results if r.action == action and r.success
        ]
        if not matching:
            continue
        lines.append(f"{title}:")
        for r in matching:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  [{r.action.value}] {_describe(r)}: {r.error}")
        lines.append("")

    skipped = len(report.skipped)
    if skipped > 0:
        lines.append(f"Skipped: {skipped} tasks")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed action is shown as ``[ACTION]`` followed by its tasks.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append("")

    if report.error:
        lines.append(f"Sync failed: {report.error}")
        return "\n".join(lines).rstrip()

    groups: dict[SyncAction, list[TaskActionResult]] = defaultdict(list)
    for r in report.results:
        if r.success:
            groups[r.action].append(r)

    for action, _ in _SECTION_TITLES:
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        for r in groups[action]:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    if report.errors:
        lines.append("[ERROR]")
        for r in report.errors:
            lines.append(f"  {_describe(r)}: {r.error}")
        lines.append("")

    skip_count = len(groups.get(SyncAction.SKIP, []))
    if skip_count > 0:
        lines.append(f"Skipped: {skip_count} tasks")
        lines.append("")

    if not report.has_changes and not report.errors:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------


def format_history(entries: list[SyncLogEntry]) -> str:
    """Format logged runs, one line each, in the order given."""
    if not entries:
        return "No sync runs recorded."
    lines = []
    for entry in entries:
        lines.append(
            f"{entry.started_at}  {entry.duration_seconds:6.2f}s  {entry.summary}"
        )
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "action": r.action.value,
            "task_title": r.task_title,
            "file_path": r.file_path,
            "destination_id": r.destination_id,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "duration_seconds": report.duration_seconds,
        "error": report.error,
        "summary": report.summary(),
        "counts": report.counts(),
        "results": results_list,
    }
