"""Tests for exclusive claiming."""

import asyncio
from datetime import timedelta

from recognition_engine.core import state_machine
from recognition_engine.core.claims import ClaimCoordinator, ClaimOutcome
from recognition_engine.core.records import JobStatus, utcnow


class TestClaimCoordinator:
    """Tests for ClaimCoordinator.try_claim."""

    async def test_claim_starts_job(self, store, make_job):
        job = await store.insert(make_job())
        coordinator = ClaimCoordinator(store)

        result = await coordinator.try_claim(job.id, "worker-1", "session-1")

        assert result.claimed
        assert result.job.status == JobStatus.PROCESSING
        assert result.job.worker_id == "worker-1"
        assert result.job.version == job.version + 1

        stored = await store.get(job.id)
        assert stored.status == JobStatus.PROCESSING
        assert stored.session_id == "session-1"
        assert stored.attempt_count == 1

    async def test_concurrent_claims_exactly_one_wins(self, store, make_job):
        job = await store.insert(make_job())
        coordinator = ClaimCoordinator(store)

        results = await asyncio.gather(*[
            coordinator.try_claim(job.id, f"worker-{i}", f"session-{i}")
            for i in range(8)
        ])

        winners = [r for r in results if r.claimed]
        assert len(winners) == 1
        assert all(r.outcome == ClaimOutcome.ALREADY_CLAIMED for r in results if not r.claimed)

        stored = await store.get(job.id)
        assert stored.worker_id == winners[0].job.worker_id
        assert stored.attempt_count == 1

    async def test_claimed_job_not_reclaimed(self, store, make_job):
        job = await store.insert(make_job())
        started = state_machine.start(job, "worker-1", "session-1")
        await store.save(started, job.version)
        coordinator = ClaimCoordinator(store)

        result = await coordinator.try_claim(job.id, "worker-2", "session-2")

        assert result.outcome == ClaimOutcome.ALREADY_CLAIMED
        assert (await store.get(job.id)).worker_id == "worker-1"

    async def test_unknown_job(self, store):
        result = await ClaimCoordinator(store).try_claim("missing", "worker-1", "session-1")

        assert not result.claimed

    async def test_terminal_job_not_claimable(self, store, make_job):
        job = await store.insert(state_machine.cancel(make_job()))

        result = await ClaimCoordinator(store).try_claim(job.id, "worker-1", "session-1")

        assert not result.claimed

    async def test_retry_claimable_after_backoff(self, store, make_job):
        past = utcnow() - timedelta(minutes=10)
        job = state_machine.fail(state_machine.start(make_job(), "w", "s", now=past), "boom", now=past)
        job = await store.insert(job)

        result = await ClaimCoordinator(store).try_claim(job.id, "worker-2", "session-2")

        assert result.claimed
        assert result.job.attempt_count == 2


class TestClaimNext:
    """Tests for the manager's worker-facing claim."""

    async def test_two_workers_one_job(self, manager, submission):
        job = await manager.submit(**submission)

        first, second = await asyncio.gather(
            manager.claim_next("worker-a", "session-a"),
            manager.claim_next("worker-b", "session-b"),
        )

        claimed = [j for j in (first, second) if j is not None]
        assert len(claimed) == 1
        assert claimed[0].id == job.id

    async def test_nothing_available(self, manager):
        assert await manager.claim_next("worker-a", "session-a") is None

    async def test_claims_most_urgent(self, manager, submission):
        await manager.submit(**submission, priority=4)
        urgent = await manager.submit(**submission, priority=1)

        claimed = await manager.claim_next("worker-a", "session-a")

        assert claimed.id == urgent.id
