"""Timer and launch triggers for the sync engine.

Every trigger funnels through ``SyncEngine.run`` and therefore through the
engine's run guard.  A trigger that finds a run in progress is logged and
dropped; it is never queued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..core.async_utils import run_sync
from ..errors import SyncInProgressError

if TYPE_CHECKING:
    from .engine import SyncEngine
    from .models import SyncReport

logger = logging.getLogger(__name__)


class PeriodicSync:
    """Run the engine every ``interval_minutes`` on an asyncio task.

    Args:
        engine: Engine to run.
        interval_minutes: Minutes between runs; ``0`` disables the timer.
        run_on_start: Run once as soon as the scheduler starts.
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval_minutes: float,
        run_on_start: bool = False,
    ) -> None:
        self.engine = engine
        self.interval_minutes = interval_minutes
        self.run_on_start = run_on_start
        self.last_report: SyncReport | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop.  No-op if already running."""
        if self.running:
            return
        if self.interval_minutes <= 0 and not self.run_on_start:
            logger.info("Periodic sync disabled")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Periodic sync started (interval: %s min, on start: %s)",
            self.interval_minutes,
            self.run_on_start,
        )

    async def stop(self) -> None:
        """Cancel the loop.  An in-flight run finishes in its worker thread."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Periodic sync stopped")

    async def trigger(self, reason: str = "manual") -> SyncReport | None:
        """Run the engine once.

        Returns:
            The report, or ``None`` when another run was in progress.
        """
        logger.debug("Sync triggered (%s)", reason)
        try:
            report = await run_sync(self.engine.run)
        except SyncInProgressError:
            logger.info("Skipping %s sync: a run is already in progress", reason)
            return None
        self.last_report = report
        return report

    async def _loop(self) -> None:
        if self.run_on_start:
            await self._guarded_trigger("launch")
        if self.interval_minutes <= 0:
            return
        while True:
            await asyncio.sleep(self.interval_minutes * 60)
            await self._guarded_trigger("timer")

    async def _guarded_trigger(self, reason: str) -> None:
        # A failing run must not end the timer.
        try:
            await self.trigger(reason)
        except Exception:
            logger.exception("Scheduled %s sync failed", reason)
