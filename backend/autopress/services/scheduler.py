"""In-process scheduler: startup catch-up, then a run on every tick."""

import asyncio
import contextlib
import logging

from autopress.services.orchestrator import GenerationOrchestrator, RunTrigger

logger = logging.getLogger(__name__)


class GenerationScheduler:
    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        interval_seconds: float,
        run_startup: bool = True,
    ) -> None:
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.run_startup = run_startup
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="generation-scheduler")
        logger.info("Scheduler started, ticking every %ss", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _loop(self) -> None:
        if self.run_startup:
            await self._tick(RunTrigger.STARTUP)
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self._tick(RunTrigger.SCHEDULED)

    async def _tick(self, trigger: RunTrigger) -> None:
        try:
            await self.orchestrator.run(trigger)
        except Exception:
            # One broken tick must not stop later ones.
            logger.exception("%s run crashed", trigger.value)
