"""Sync orchestrator: one-way reconciliation from the vault to the task store.

The ``SyncEngine`` ties together the source and destination adapters and
the state store into a complete run.  It:

1. Acquires the run guard (a second concurrent run fails immediately).
2. Validates the vault root and destination access.
3. Loads persisted sync state.
4. Scans the vault and enumerates the destination.
5. Reconciles every mapped pair: update, delete or unlink.
6. Optionally writes destination completion state back to the vault.
7. Creates destination tasks for unmapped vault tasks.
8. Persists state (unless dry run) and records a ``SyncReport``.

Error handling is per-task: a single task failure does not abort the run.
Environment failures abort before anything is mutated.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path

from ..config import validate_vault_path
from ..config_schema import SyncSettings, UnifiedConfig
from ..destinations.base import TaskDestination
from ..destinations.json_store import JsonTaskStore
from ..errors import (
    ConfigurationError,
    DestinationAccessError,
    DestinationError,
    StaleTaskError,
    SyncInProgressError,
    TaskNotFoundError,
    UnencodableEditError,
)
from ..safety.audit import AuditLog
from ..safety.backup import FileBackupService
from ..sources.base import TaskSource
from ..sources.markdown import MarkdownTaskSource
from .history import HISTORY_FILENAME, SyncHistory
from .identity import content_hash
from .models import SyncAction, SyncReport, TaskActionResult, TaskRecord
from .state import SyncStateStore

logger = logging.getLogger(__name__)

# Failures that concern one task only; anything else propagates.
_TASK_ERRORS = (
    StaleTaskError,
    UnencodableEditError,
    DestinationError,
    OSError,
)


class RunGuard:
    """Non-blocking mutual exclusion for sync runs.

    Owned by a single engine; every trigger (timer, launch, explicit call)
    goes through the same instance.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        """Take the guard if free.  Never waits."""
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def is_held(self) -> bool:
        return self._lock.locked()


def _result(
    action: SyncAction,
    task: TaskRecord | None,
    source_id: str | None = None,
    destination_id: str | None = None,
    error: str | None = None,
    success: bool = True,
) -> TaskActionResult:
    origin = task.source_origin if task is not None else None
    return TaskActionResult(
        action=action,
        task_title=task.title if task is not None else "",
        file_path=origin.file_path if origin else None,
        source_id=source_id,
        destination_id=destination_id,
        success=success,
        error=error,
    )


class SyncEngine:
    """Orchestrate a full reconciliation run.

    Args:
        source: Authoritative task source.
        destination: Task store kept in sync.
        settings: Routing, writeback and dry-run settings.
        state_store: Persistence for the source/destination mapping.
        history: Optional run log; every completed run is recorded.
        audit: Optional audit log; discarded sync state is recorded there.
        today: Clock for writeback completion dates, injectable for tests.
    """

    def __init__(
        self,
        source: TaskSource,
        destination: TaskDestination,
        settings: SyncSettings,
        state_store: SyncStateStore,
        history: SyncHistory | None = None,
        audit: AuditLog | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.source = source
        self.destination = destination
        self.settings = settings
        self.state_store = state_store
        self.history = history
        self.audit = audit
        self._today = today
        self._guard = RunGuard()

    @property
    def is_running(self) -> bool:
        return self._guard.is_held

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, dry_run: bool | None = None) -> SyncReport:
        """Execute one sync run.

        Args:
            dry_run: Overrides ``settings.dry_run`` when not ``None``.

        Returns:
            The ``SyncReport`` for the run, also recorded in the history.

        Raises:
            SyncInProgressError: If another run holds the guard.  Nothing
                is read, written or recorded in that case.
        """
        if not self._guard.try_acquire():
            logger.warning("Sync requested while another run is in progress")
            raise SyncInProgressError()
        try:
            effective = self.settings.dry_run if dry_run is None else dry_run
            report = self._run_locked(effective)
            if self.history is not None:
                try:
                    self.history.record(report)
                except OSError as exc:
                    logger.error("Could not record sync history: %s", exc)
            return report
        finally:
            self._guard.release()

    def _run_locked(self, dry_run: bool) -> SyncReport:
        started_at = datetime.now(timezone.utc).isoformat()
        started = time.monotonic()
        results: list[TaskActionResult] = []

        def finish(error: str | None = None) -> SyncReport:
            report = SyncReport(
                dry_run=dry_run,
                results=results,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc).isoformat(),
                duration_seconds=round(time.monotonic() - started, 3),
                error=error,
            )
            if error:
                logger.error("Sync aborted: %s", error)
            else:
                logger.info("Sync finished: %s", report.summary())
            return report

        # Preconditions
        try:
            validate_vault_path(self.settings)
            if not self.destination.request_access():
                raise DestinationAccessError(
                    "Access to the destination task store was not granted"
                )
        except (ConfigurationError, DestinationAccessError) as exc:
            return finish(str(exc))

        state = self.state_store.load()
        reset_reason = self.state_store.reset_reason
        if reset_reason and self.audit is not None and not dry_run:
            try:
                self.audit.log(f"STATE_RESET {reset_reason}")
            except OSError as exc:
                logger.error("Could not audit sync state reset: %s", exc)

        # Snapshot both stores
        try:
            source_tasks = self._index_source(self.source.scan_tasks())
            self.destination.refresh()
            destination_tasks = {
                task.destination_id: task
                for task in self.destination.fetch_all_tasks()
                if task.destination_id
            }
        except (OSError, DestinationError) as exc:
            return finish(f"Could not enumerate tasks: {exc}")

        logger.debug(
            "Reconciling %d vault tasks against %d destination tasks "
            "(%d mappings)",
            len(source_tasks),
            len(destination_tasks),
            len(SyncStateStore.entries(state)),
        )

        writeback_pairs = self._reconcile_mappings(
            state, source_tasks, destination_tasks, dry_run, results
        )
        if self.settings.enable_completion_writeback:
            for source_id, task, remote in writeback_pairs:
                result = self._write_back_completion(
                    state, source_id, task, remote, dry_run
                )
                if result is not None:
                    results.append(result)
        self._create_unmapped(state, source_tasks, dry_run, results)

        if dry_run:
            logger.info("Dry run: sync state not persisted")
        else:
            try:
                self.state_store.save(state)
            except OSError as exc:
                return finish(f"Could not save sync state: {exc}")
        return finish()

    # ------------------------------------------------------------------
    # Snapshot helpers
    # ------------------------------------------------------------------

    def _index_source(
        self, tasks: list[TaskRecord]
    ) -> dict[str, TaskRecord]:
        indexed: dict[str, TaskRecord] = {}
        for task in tasks:
            source_id = self.source.generate_task_id(task)
            if source_id in indexed:
                # Identical task twice in one file; only the first is synced.
                logger.debug(
                    "Duplicate task '%s' in %s ignored",
                    task.title,
                    task.source_origin.file_path if task.source_origin else "?",
                )
                continue
            indexed[source_id] = task
        return indexed

    # ------------------------------------------------------------------
    # Existing mappings
    # ------------------------------------------------------------------

    def _reconcile_mappings(
        self,
        state: dict,
        source_tasks: dict[str, TaskRecord],
        destination_tasks: dict[str, TaskRecord],
        dry_run: bool,
        results: list[TaskActionResult],
    ) -> list[tuple[str, TaskRecord, TaskRecord]]:
        """Update, delete or unlink every mapped pair.

        Returns:
            Pairs that are candidates for completion writeback: those whose
            vault side is unchanged since the last sync, plus updated pairs
            whose completion was changed on the destination only.
        """
        candidates: list[tuple[str, TaskRecord, TaskRecord]] = []

        for source_id, entry in list(SyncStateStore.entries(state).items()):
            task = source_tasks.get(source_id)
            destination_id = entry.get("destination_id")
            remote = (
                destination_tasks.get(destination_id)
                if destination_id
                else None
            )

            if task is None:
                results.append(
                    self._delete(state, source_id, entry, remote, dry_run)
                )
            elif remote is None:
                SyncStateStore.remove_entry(state, source_id)
                logger.info(
                    "Destination task for '%s' is gone; unlinking", task.title
                )
                results.append(
                    _result(
                        SyncAction.UNLINK, task, source_id, destination_id
                    )
                )
            elif content_hash(task) != entry.get("content_hash"):
                keep_remote = self._completion_changed_remotely(
                    entry, task, remote
                )
                result = self._update(
                    state,
                    source_id,
                    task,
                    remote,
                    dry_run,
                    completion_from=remote if keep_remote else None,
                )
                results.append(result)
                if keep_remote and result.success:
                    candidates.append((source_id, task, remote))
            else:
                candidates.append((source_id, task, remote))

        return candidates

    def _completion_changed_remotely(
        self, entry: dict, task: TaskRecord, remote: TaskRecord
    ) -> bool:
        """True when only the destination flipped completion since last sync.

        Entries written before completion was recorded count as changed in
        the vault, so the vault side wins for them.
        """
        if not self.settings.enable_completion_writeback:
            return False
        if remote.is_completed == task.is_completed:
            return False
        return entry.get("completed") is task.is_completed

    def _delete(
        self,
        state: dict,
        source_id: str,
        entry: dict,
        remote: TaskRecord | None,
        dry_run: bool,
    ) -> TaskActionResult:
        destination_id = entry.get("destination_id")
        if remote is None:
            # Gone on both sides.
            SyncStateStore.remove_entry(state, source_id)
            return _result(
                SyncAction.UNLINK, None, source_id, destination_id
            )

        if not dry_run:
            try:
                self.destination.delete_task(remote.destination_id)
            except TaskNotFoundError:
                logger.debug(
                    "Destination task %s already deleted", destination_id
                )
            except _TASK_ERRORS as exc:
                logger.warning(
                    "Failed to delete destination task %s: %s",
                    destination_id,
                    exc,
                )
                return _result(
                    SyncAction.DELETE,
                    remote,
                    source_id,
                    destination_id,
                    error=str(exc),
                    success=False,
                )
        SyncStateStore.remove_entry(state, source_id)
        logger.info("Deleted '%s' (removed from vault)", remote.title)
        return _result(SyncAction.DELETE, remote, source_id, destination_id)

    def _update(
        self,
        state: dict,
        source_id: str,
        task: TaskRecord,
        remote: TaskRecord,
        dry_run: bool,
        completion_from: TaskRecord | None = None,
    ) -> TaskActionResult:
        """Push the vault fields of *task* to the destination.

        With *completion_from*, its completion state is pushed instead of
        the vault's, so a pending writeback is not undone.  The stored
        entry always reflects the vault as read; writeback refreshes it.
        """
        destination_id = remote.destination_id
        target_list = self.settings.list_for_tag(task.list_tag)
        pushed = task
        if completion_from is not None:
            pushed = task.model_copy(
                update={
                    "is_completed": completion_from.is_completed,
                    "completion_date": completion_from.completion_date,
                }
            )
        if not dry_run:
            try:
                self.destination.update_task(destination_id, pushed)
                if remote.list_name != target_list:
                    self.destination.move_task(destination_id, target_list)
            except _TASK_ERRORS as exc:
                logger.warning("Failed to update '%s': %s", task.title, exc)
                return _result(
                    SyncAction.UPDATE,
                    task,
                    source_id,
                    destination_id,
                    error=str(exc),
                    success=False,
                )
        SyncStateStore.set_entry(
            state,
            source_id,
            destination_id,
            content_hash(task),
            completed=task.is_completed,
        )
        logger.info("Updated '%s'", task.title)
        return _result(SyncAction.UPDATE, task, source_id, destination_id)

    # ------------------------------------------------------------------
    # Completion writeback
    # ------------------------------------------------------------------

    def _write_back_completion(
        self,
        state: dict,
        source_id: str,
        task: TaskRecord,
        remote: TaskRecord,
        dry_run: bool,
    ) -> TaskActionResult | None:
        if remote.is_completed == task.is_completed:
            return None

        destination_id = remote.destination_id
        if remote.is_completed:
            action = SyncAction.COMPLETE
            completion_date = remote.completion_date or self._today()
        else:
            action = SyncAction.UNCOMPLETE
            completion_date = None

        try:
            if self.source.has_file_changed(task):
                return _result(
                    action,
                    task,
                    source_id,
                    destination_id,
                    error="File modified during sync",
                    success=False,
                )
            if not dry_run:
                if action is SyncAction.COMPLETE:
                    self.source.mark_task_complete(task, completion_date)
                else:
                    self.source.mark_task_incomplete(task)
        except _TASK_ERRORS as exc:
            logger.warning(
                "Completion writeback for '%s' failed: %s", task.title, exc
            )
            return _result(
                action,
                task,
                source_id,
                destination_id,
                error=str(exc),
                success=False,
            )

        synced = task.model_copy(
            update={
                "is_completed": remote.is_completed,
                "completion_date": completion_date,
            }
        )
        SyncStateStore.set_entry(
            state,
            source_id,
            destination_id,
            content_hash(synced),
            completed=synced.is_completed,
        )
        logger.info("Wrote back %s for '%s'", action.value, task.title)
        return _result(action, task, source_id, destination_id)

    # ------------------------------------------------------------------
    # New tasks
    # ------------------------------------------------------------------

    def _create_unmapped(
        self,
        state: dict,
        source_tasks: dict[str, TaskRecord],
        dry_run: bool,
        results: list[TaskActionResult],
    ) -> None:
        entries = SyncStateStore.entries(state)
        for source_id, task in source_tasks.items():
            if source_id in entries:
                continue
            if task.is_completed and not self.settings.sync_completed_tasks:
                results.append(
                    _result(
                        SyncAction.SKIP,
                        task,
                        source_id,
                        error="Completed task skipped",
                    )
                )
                continue

            list_name = self.settings.list_for_tag(task.list_tag)
            destination_id = None
            if not dry_run:
                try:
                    destination_id = self.destination.create_task(
                        task, list_name
                    )
                except _TASK_ERRORS as exc:
                    logger.warning(
                        "Failed to create '%s': %s", task.title, exc
                    )
                    results.append(
                        _result(
                            SyncAction.CREATE,
                            task,
                            source_id,
                            error=str(exc),
                            success=False,
                        )
                    )
                    continue
            SyncStateStore.set_entry(
                state,
                source_id,
                destination_id,
                content_hash(task),
                completed=task.is_completed,
            )
            logger.info("Created '%s' in list '%s'", task.title, list_name)
            results.append(
                _result(SyncAction.CREATE, task, source_id, destination_id)
            )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_engine(config: UnifiedConfig) -> SyncEngine:
    """Wire a ``SyncEngine`` from a resolved configuration.

    Raises:
        ConfigurationError: If the vault root is not a usable vault.
    """
    settings = config.sync
    vault_root = validate_vault_path(settings)
    data_dir = settings.data_path

    backup = FileBackupService(
        data_dir / "backups",
        vault_root=vault_root,
        max_per_file=config.backup.max_per_file,
        max_age_days=config.backup.max_age_days,
    )
    audit = AuditLog(data_dir / "audit.log", max_bytes=config.audit.max_bytes)
    source = MarkdownTaskSource(
        vault_root,
        backup,
        audit,
        task_files_pattern=settings.task_files_pattern,
        excluded_folders=settings.excluded_folders,
        inbox_file_path=settings.inbox_file_path,
    )

    store_path = (
        Path(config.destination.path).expanduser()
        if config.destination.path
        else data_dir / "tasks.json"
    )
    destination = JsonTaskStore(store_path, default_lists=[settings.default_list])

    return SyncEngine(
        source=source,
        destination=destination,
        settings=settings,
        state_store=SyncStateStore(data_dir),
        history=SyncHistory(
            data_dir / HISTORY_FILENAME, capacity=settings.history_capacity
        ),
        audit=audit,
    )
