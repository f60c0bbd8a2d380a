"""Background sweep that times out stalled processing jobs."""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from recognition_engine.core.errors import IllegalTransition, JobNotFound, StaleJobError
from recognition_engine.core.model_types import MODEL_SPECS, get_model_spec
from recognition_engine.core.records import Job, JobStatus, utcnow

logger = logging.getLogger(__name__)


def time_budget(job: Job, default: int) -> int:
    """Seconds a claim may stay in processing: per job, else per model, else ``default``."""
    if job.timeout_seconds:
        return job.timeout_seconds
    spec_timeout = get_model_spec(job.model_type).timeout
    return spec_timeout or default


def is_stalled(job: Job, default_budget: int, now: Optional[datetime] = None) -> bool:
    if job.status != JobStatus.PROCESSING:
        return False
    since = job.claimed_at or job.started_at
    if since is None:
        return False
    now = now or utcnow()
    return (now - since).total_seconds() > time_budget(job, default_budget)


class WatchdogTimer:
    """Periodically converts stalled ``processing`` jobs into ``timeout``.

    Advisory only: the worker holding the claim is not interrupted here, it
    notices the status change on its next poll.
    """

    def __init__(self, manager, interval: float = 30.0, default_budget: int = 3600):
        self._manager = manager
        self._default_budget = default_budget
        # Must stay below the smallest budget to bound detection latency
        smallest = min([default_budget] + [spec.timeout for spec in MODEL_SPECS.values() if spec.timeout])
        self._interval = min(interval, max(smallest / 2, 1.0))
        self._next_delay = self._interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def next_delay(self) -> float:
        """Sleep before the next sweep, shortened for jobs with a tighter budget."""
        return self._next_delay

    async def start(self):
        """Start the watchdog background task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._watch_loop())
        logger.info("Watchdog started (interval %.1fs)", self._interval)

    async def stop(self):
        """Stop the watchdog background task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Watchdog stopped")

    async def _watch_loop(self):
        while self._running:
            try:
                timed_out = await self.sweep()
                if timed_out:
                    logger.warning("Watchdog timed out %d job(s)", len(timed_out))
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Watchdog sweep error: %s", e)

            await asyncio.sleep(self._next_delay)

    async def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Time out every stalled job; returns the ids that were transitioned."""
        now = now or utcnow()
        timed_out = []
        processing = await self._manager.store.list_processing()
        self._next_delay = self._interval
        tightest = await self._manager.store.min_job_timeout()
        if tightest:
            self._next_delay = min(self._next_delay, tightest / 2)
        for job in processing:
            if not is_stalled(job, self._default_budget, now):
                continue
            try:
                await self._manager.timeout_job(job.id, session_id=job.session_id)
                timed_out.append(job.id)
            except (IllegalTransition, StaleJobError, JobNotFound) as e:
                # Settled by its worker between the listing and the write
                logger.info("Watchdog skipped job %s: %s", job.id, e)
        return timed_out

