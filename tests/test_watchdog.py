"""Tests for the stalled-job watchdog."""

import asyncio
from datetime import timedelta

import pytest

from recognition_engine.core.errors import IllegalTransition
from recognition_engine.core.model_types import MODEL_SPECS, ModelType, get_model_spec
from recognition_engine.core.records import JobStatus, utcnow
from recognition_engine.core.watchdog import WatchdogTimer, is_stalled, time_budget


class TestTimeBudget:
    def test_job_budget_wins(self, make_job):
        assert time_budget(make_job(timeout_seconds=45), 3600) == 45

    def test_model_budget_fallback(self, make_job):
        job = make_job(model_type=ModelType.CAD_PARSER)

        assert time_budget(job, 3600) == get_model_spec(ModelType.CAD_PARSER).timeout

    def test_pending_never_stalled(self, make_job):
        assert not is_stalled(make_job(), 1, utcnow() + timedelta(days=1))


class TestWatchdogTimer:
    """Tests for WatchdogTimer.sweep."""

    async def test_sweep_times_out_stalled_job(self, manager, submission, sink):
        job = await manager.submit(**submission, timeout_seconds=60)
        await manager.claim_next("worker-a", "session-a")
        watchdog = WatchdogTimer(manager, interval=30, default_budget=3600)

        assert await watchdog.sweep(utcnow() + timedelta(seconds=30)) == []
        timed_out = await watchdog.sweep(utcnow() + timedelta(seconds=61))
        await manager.drain_notifications()

        stored = await manager.get_job(job.id)
        assert timed_out == [job.id]
        assert stored.status == JobStatus.TIMEOUT
        assert stored.next_retry_at is None
        assert stored.worker_id is None
        assert [e.status for e in sink.events] == ["timeout"]

    async def test_timeout_not_retried(self, manager, submission):
        job = await manager.submit(**submission, timeout_seconds=1, max_attempts=5)
        await manager.claim_next("worker-a", "session-a")

        await WatchdogTimer(manager).sweep(utcnow() + timedelta(seconds=5))

        assert (await manager.get_job(job.id)).status == JobStatus.TIMEOUT
        assert await manager.claim_next("worker-b", "session-b") is None

    async def test_other_claim_session_not_timed_out(self, manager, submission):
        job = await manager.submit(**submission)
        await manager.claim_next("worker-a", "session-a")

        with pytest.raises(IllegalTransition):
            await manager.timeout_job(job.id, session_id="stale-session")

        assert (await manager.get_job(job.id)).status == JobStatus.PROCESSING

    async def test_interval_below_smallest_budget(self, manager):
        smallest = min(spec.timeout for spec in MODEL_SPECS.values())
        watchdog = WatchdogTimer(manager, interval=600, default_budget=3600)

        assert watchdog.interval < smallest

    async def test_per_job_budget_shortens_next_sweep(self, manager, submission):
        watchdog = WatchdogTimer(manager, interval=30.0, default_budget=3600)
        await watchdog.sweep()
        assert watchdog.next_delay == watchdog.interval

        job = await manager.submit(**submission, timeout_seconds=5)
        await watchdog.sweep()
        assert watchdog.next_delay < 5

        await manager.claim_next("worker-a", "session-a")
        await watchdog.sweep()
        assert watchdog.next_delay < 5

        await manager.cancel_job(job.id)
        await watchdog.sweep()
        assert watchdog.next_delay == watchdog.interval

    async def test_start_stop(self, manager):
        watchdog = WatchdogTimer(manager, interval=0.01)

        await watchdog.start()
        await asyncio.sleep(0.05)
        await watchdog.stop()
