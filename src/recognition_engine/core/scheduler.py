"""Priority ordering of dispatch candidates."""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from recognition_engine.core import state_machine
from recognition_engine.core.records import Job, utcnow
from recognition_engine.core.store import JobStore


def is_candidate(job: Job, now: Optional[datetime] = None) -> bool:
    return state_machine.is_due(job, now)


def sort_key(job: Job, now: datetime) -> Tuple[int, datetime, datetime]:
    # Unscheduled jobs sort as "now": after past-scheduled jobs of the same priority
    return (job.priority, job.scheduled_for or now, job.created_at)


def order_candidates(pool: Iterable[Job], now: Optional[datetime] = None) -> List[Job]:
    """Eligible jobs from ``pool``, most urgent first."""
    now = now or utcnow()
    return sorted((job for job in pool if is_candidate(job, now)), key=lambda job: sort_key(job, now))


def select_next(pool: Iterable[Job], now: Optional[datetime] = None) -> Optional[Job]:
    ordered = order_candidates(pool, now)
    return ordered[0] if ordered else None


class PriorityScheduler:
    """Yields dispatch candidates from the store; never executes them."""

    def __init__(self, store: JobStore, batch_size: int = 10):
        self._store = store
        self._batch_size = batch_size

    async def candidates(self, now: Optional[datetime] = None) -> List[Job]:
        now = now or utcnow()
        pool = await self._store.fetch_candidates(now, limit=self._batch_size)
        return order_candidates(pool, now)
