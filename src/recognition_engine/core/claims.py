"""Exclusive job claiming."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from recognition_engine.core import state_machine
from recognition_engine.core.errors import NotClaimable, StaleJobError
from recognition_engine.core.records import Job, JobStatus, utcnow
from recognition_engine.core.store import JobStore

logger = logging.getLogger(__name__)

CLAIMABLE_STATUSES = (JobStatus.PENDING, JobStatus.QUEUED, JobStatus.FAILED)


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    ALREADY_CLAIMED = "already_claimed"


@dataclass(frozen=True)
class ClaimResult:
    outcome: ClaimOutcome
    job_id: str
    job: Optional[Job] = None

    @property
    def claimed(self) -> bool:
        return self.outcome == ClaimOutcome.CLAIMED


class ClaimCoordinator:
    """Hands a job to at most one worker at a time.

    The claim and the ``start`` transition land in the same conditional
    write: the row must still be at the version the claimant read and in a
    claimable status. Among concurrent claimants exactly one write matches.
    """

    def __init__(self, store: JobStore):
        self._store = store

    async def try_claim(self, job_id: str, worker_id: str, session_id: str) -> ClaimResult:
        job = await self._store.find(job_id)
        if job is None:
            return ClaimResult(ClaimOutcome.ALREADY_CLAIMED, job_id)

        try:
            started = state_machine.start(job, worker_id, session_id, now=utcnow())
        except NotClaimable:
            return ClaimResult(ClaimOutcome.ALREADY_CLAIMED, job_id)

        try:
            saved = await self._store.save(started, job.version, statuses=CLAIMABLE_STATUSES)
        except StaleJobError:
            logger.debug("Worker %s lost claim race for job %s", worker_id, job_id)
            return ClaimResult(ClaimOutcome.ALREADY_CLAIMED, job_id)

        logger.info("Worker %s claimed job %s (attempt %d)", worker_id, job_id, saved.attempt_count)
        return ClaimResult(ClaimOutcome.CLAIMED, job_id, saved)
