"""Job manager: submission, worker protocol and the background worker pool."""

import asyncio
import logging
import os
import socket
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from recognition_engine.core import state_machine
from recognition_engine.core.backoff import BackoffPolicy
from recognition_engine.core.claims import ClaimCoordinator
from recognition_engine.core.config import settings
from recognition_engine.core.errors import IllegalTransition, JobValidationError, StaleJobError
from recognition_engine.core.model_types import ModelType
from recognition_engine.core.notifications import JobEvent, NotificationSink
from recognition_engine.core.records import Job, JobStatus, new_job_id, utcnow
from recognition_engine.core.results import RecognitionResults, normalize_response
from recognition_engine.core.runner import InferenceRunner
from recognition_engine.core.scheduler import PriorityScheduler
from recognition_engine.core.store import JobFilter, JobStore, Page

logger = logging.getLogger(__name__)


class JobSubmission(BaseModel):
    """Accepted input domain for a new job."""
    model_config = ConfigDict(protected_namespaces=())

    tenant_id: str = Field(min_length=1, max_length=100)
    initiated_by: str = Field(min_length=1, max_length=100)
    target_resource_id: str = Field(min_length=1, max_length=100)
    model_type: ModelType
    priority: int = Field(default=settings.DEFAULT_PRIORITY, ge=1, le=4)
    max_attempts: int = Field(default=settings.DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    scheduled_for: Optional[datetime] = None
    name: str = Field(default="", max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    timeout_seconds: Optional[int] = Field(default=None, ge=1)
    callback_url: Optional[str] = Field(default=None, max_length=500)
    notification_email: Optional[str] = Field(default=None, max_length=200)
    enable_webhook: bool = False
    model_options: Dict[str, Any] = Field(default_factory=dict)
    processing_params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("scheduled_for")
    @classmethod
    def _naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class JobManager:
    """Entry point for every job operation.

    All mutations go read -> pure transition -> conditional write. A write
    that loses to a concurrent update is re-applied on a fresh read, so a
    late call against a job that meanwhile became terminal is rejected with
    ``IllegalTransition`` instead of overriding it.
    """

    _instance: Optional["JobManager"] = None

    MAX_WRITE_ATTEMPTS = 5
    LOOP_ERROR_BACKOFF = 5.0

    def __init__(
        self,
        store: JobStore,
        runner: Optional[InferenceRunner] = None,
        sinks: Optional[List[NotificationSink]] = None,
        backoff: Optional[BackoffPolicy] = None,
        worker_count: int = 1,
        poll_interval: float = 2.0,
        cancel_poll_interval: float = 5.0,
        claim_batch_size: int = 10,
    ):
        self._store = store
        self._runner = runner
        self._sinks: List[NotificationSink] = list(sinks or [])
        self._backoff = backoff or BackoffPolicy()
        self._claims = ClaimCoordinator(store)
        self._scheduler = PriorityScheduler(store, batch_size=claim_batch_size)

        self._max_workers = worker_count
        self._poll_interval = poll_interval
        self._cancel_poll_interval = cancel_poll_interval
        self._worker_prefix = f"{socket.gethostname()}-{os.getpid()}"

        self._running = False
        self._workers: List[asyncio.Task] = []
        self._notifications: Set[asyncio.Task] = set()

    @classmethod
    def get_instance(cls) -> "JobManager":
        """Get singleton instance."""
        if cls._instance is None:
            raise RuntimeError("JobManager has not been configured")
        return cls._instance

    @classmethod
    def set_instance(cls, manager: Optional["JobManager"]) -> None:
        cls._instance = manager

    @classmethod
    def from_settings(
        cls,
        store: JobStore,
        runner: Optional[InferenceRunner] = None,
        sinks: Optional[List[NotificationSink]] = None,
    ) -> "JobManager":
        return cls(
            store,
            runner=runner,
            sinks=sinks,
            backoff=BackoffPolicy.from_settings(settings),
            worker_count=settings.WORKER_COUNT,
            poll_interval=settings.WORKER_POLL_INTERVAL,
            cancel_poll_interval=settings.CANCEL_POLL_INTERVAL,
            claim_batch_size=settings.CLAIM_BATCH_SIZE,
        )

    @property
    def store(self) -> JobStore:
        return self._store

    def add_sink(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    # Submission and queries

    async def submit(self, **fields: Any) -> Job:
        """Validate and create a job in ``pending``."""
        try:
            submission = JobSubmission(**fields)
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            raise JobValidationError("Invalid job submission", errors) from e
        return await self.create_job(submission)

    async def create_job(self, submission: JobSubmission) -> Job:
        now = utcnow()
        job = Job(
            id=new_job_id(),
            created_at=now,
            updated_at=now,
            **submission.model_dump(),
        )
        return await self._store.insert(state_machine.created(job, now))

    async def get_job(self, job_id: str) -> Job:
        return await self._store.get(job_id)

    async def list_jobs(self, filters: Optional[JobFilter] = None, page: int = 1, page_size: int = 20) -> Page:
        return await self._store.list(filters, page=page, page_size=page_size)

    async def get_jobs_stats(self, tenant_id: Optional[str] = None) -> dict:
        return await self._store.stats(tenant_id)

    # Worker protocol

    async def claim_next(self, worker_id: str, session_id: str) -> Optional[Job]:
        """Claim the most urgent due job, or ``None`` when nothing is available."""
        for candidate in await self._scheduler.candidates():
            result = await self._claims.try_claim(candidate.id, worker_id, session_id)
            if result.claimed:
                return result.job
        return None

    async def report_progress(
        self,
        job_id: str,
        progress: float,
        stage: str,
        detail: Optional[Dict[str, Any]] = None,
        worker_id: Optional[str] = None,
    ) -> Job:
        return await self._transition(
            job_id,
            "update progress of",
            lambda job: state_machine.update_progress(job, progress, stage, detail),
            worker_id,
        )

    async def report_success(
        self,
        job_id: str,
        results: Any,
        worker_id: Optional[str] = None,
    ) -> Job:
        """Complete a job; raw payloads are normalised for the job's model first."""

        def apply(job: Job) -> Job:
            if isinstance(results, BaseModel):
                return state_machine.complete(job, results)
            try:
                typed: RecognitionResults = normalize_response(job.model_type, results)
            except ValidationError as e:
                errors = e.errors(include_url=False, include_context=False)
                raise JobValidationError("Invalid results payload", errors) from e
            return state_machine.complete(job, typed)

        return await self._transition(job_id, "complete", apply, worker_id)

    async def report_failure(
        self,
        job_id: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        worker_id: Optional[str] = None,
    ) -> Job:
        return await self._transition(
            job_id,
            "fail",
            lambda job: state_machine.fail(job, message, context, policy=self._backoff),
            worker_id,
        )

    # Administrative

    async def cancel_job(self, job_id: str, reason: Optional[str] = None) -> Job:
        return await self._transition(job_id, "cancel", lambda job: state_machine.cancel(job, reason))

    async def queue_job(self, job_id: str) -> Job:
        return await self._transition(job_id, "queue", state_machine.queue)

    async def timeout_job(self, job_id: str, session_id: Optional[str] = None) -> Job:
        """Time out a processing job; with ``session_id``, only that claim session."""

        def apply(job: Job) -> Job:
            if session_id is not None and job.session_id != session_id:
                raise IllegalTransition(job.id, job.status.value, "time out", "claim session changed")
            return state_machine.timeout(job)

        return await self._transition(job_id, "time out", apply)

    async def _transition(
        self,
        job_id: str,
        operation: str,
        apply: Callable[[Job], Job],
        worker_id: Optional[str] = None,
    ) -> Job:
        for _ in range(self.MAX_WRITE_ATTEMPTS):
            job = await self._store.get(job_id)
            if worker_id is not None and job.worker_id != worker_id:
                raise IllegalTransition(job.id, job.status.value, operation, f"not held by {worker_id}")

            updated = apply(job)
            if updated is job:
                return job

            try:
                saved = await self._store.save(updated, job.version)
            except StaleJobError:
                logger.warning("Concurrent update on job %s during %s, retrying", job_id, operation)
                continue

            logger.info("Job %s: %s -> %s", job_id, job.status.value, saved.status.value)
            if state_machine.is_terminal(saved) and not state_machine.is_terminal(job):
                self._notify(saved)
            return saved

        raise StaleJobError(job_id, job.version)

    # Notifications

    def _notify(self, job: Job) -> None:
        """Fire-and-forget delivery of the terminal event to every sink."""
        event = JobEvent.from_job(job)
        for sink in self._sinks:
            task = asyncio.create_task(self._deliver(sink, event, job))
            self._notifications.add(task)
            task.add_done_callback(self._notifications.discard)

    async def _deliver(self, sink: NotificationSink, event: JobEvent, job: Job) -> None:
        try:
            await sink.send(event, job)
        except Exception as e:
            logger.error("Notification sink %s failed for job %s: %s", type(sink).__name__, event.job_id, e)

    async def drain_notifications(self) -> None:
        if self._notifications:
            await asyncio.gather(*list(self._notifications), return_exceptions=True)

    # Worker pool

    async def start(self) -> None:
        """Start the job manager workers."""
        if self._running:
            return
        if self._runner is None:
            raise RuntimeError("No inference runner configured")

        self._running = True
        for i in range(self._max_workers):
            worker = asyncio.create_task(self._worker(i))
            self._workers.append(worker)

        logger.info("Job manager started with %d workers", self._max_workers)

    async def stop(self) -> None:
        """Stop the job manager."""
        self._running = False
        for worker in self._workers:
            worker.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        await self.drain_notifications()
        logger.info("Job manager stopped")

    async def _worker(self, index: int) -> None:
        """Worker loop polling the store."""
        worker_id = f"{self._worker_prefix}-w{index}"
        logger.info("Worker %s started", worker_id)

        while self._running:
            try:
                session_id = f"session-{uuid.uuid4().hex[:12]}"
                job = await self.claim_next(worker_id, session_id)
                if job:
                    await self.execute_job(job, worker_id)
                else:
                    # No job, sleep
                    await asyncio.sleep(self._poll_interval)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception("Worker %s loop error: %s", worker_id, e)
                await asyncio.sleep(self.LOOP_ERROR_BACKOFF)

    async def execute_job(self, job: Job, worker_id: str) -> None:
        """Run a claimed job to a terminal call, abandoning it if the claim is lost."""

        async def report(progress: float, stage: str, detail: Optional[Dict[str, Any]] = None) -> None:
            await self.report_progress(job.id, progress, stage, detail, worker_id=worker_id)

        inference = asyncio.create_task(self._runner.run(job, report))
        watcher = asyncio.create_task(self._watch_claim(job.id, worker_id, inference))
        try:
            try:
                raw = await inference
            except asyncio.CancelledError:
                if watcher.done() and not watcher.cancelled() and watcher.result():
                    logger.info("Job %s no longer held by %s, inference aborted", job.id, worker_id)
                    return
                raise
            except IllegalTransition as e:
                logger.info("Job %s abandoned by %s: %s", job.id, worker_id, e)
                return
            except Exception as e:
                logger.error("Job %s failed: %s", job.id, e)
                await self._terminal_call(self.report_failure(
                    job.id,
                    f"{type(e).__name__}: {e}",
                    {"traceback": traceback.format_exc()},
                    worker_id=worker_id,
                ))
                return
        finally:
            watcher.cancel()

        try:
            results = normalize_response(job.model_type, raw if raw is not None else {})
        except ValidationError as e:
            await self._terminal_call(self.report_failure(
                job.id,
                "Invalid results from inference service",
                {"errors": e.errors(include_url=False, include_context=False)},
                worker_id=worker_id,
            ))
            return
        except (ValueError, TypeError) as e:
            await self._terminal_call(self.report_failure(
                job.id,
                f"Invalid results from inference service: {e}",
                worker_id=worker_id,
            ))
            return

        await self._terminal_call(self.report_success(job.id, results, worker_id=worker_id))

    async def _terminal_call(self, call) -> None:
        try:
            saved = await call
            logger.info("Job %s settled as %s", saved.id, saved.status.value)
        except IllegalTransition as e:
            logger.warning("Stale terminal report rejected: %s", e)

    async def _watch_claim(self, job_id: str, worker_id: str, inference: asyncio.Task) -> bool:
        """Poll the job; cancel ``inference`` once another actor has moved it on."""
        while not inference.done():
            await asyncio.sleep(self._cancel_poll_interval)
            try:
                current = await self._store.find(job_id)
            except Exception as e:
                logger.error("Claim check failed for job %s: %s", job_id, e)
                continue
            if current is None or current.status != JobStatus.PROCESSING or current.worker_id != worker_id:
                inference.cancel()
                return True
        return False
