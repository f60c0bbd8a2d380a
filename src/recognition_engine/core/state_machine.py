"""Job state machine.

Every transition is a pure function from one ``Job`` snapshot to the next;
persisting the result is the store's job. Legal moves::

    pending -> queued | processing
    queued  -> processing
    processing -> completed | failed | pending (retry) | timeout
    any non-terminal -> cancelled

``completed``, ``cancelled``, ``timeout`` and a ``failed`` job with no
attempts left are terminal.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional

from recognition_engine.core.backoff import DEFAULT_BACKOFF, BackoffPolicy
from recognition_engine.core.errors import IllegalTransition, NotClaimable, ResultKindMismatch
from recognition_engine.core.model_types import get_model_spec
from recognition_engine.core.progress import ErrorEntry, LogEntry, LogLevel
from recognition_engine.core.records import Job, JobStatus, utcnow
from recognition_engine.core.results import RecognitionResults

TIMEOUT_MESSAGE = "Processing exceeded time budget"

READY_STATUSES = (JobStatus.PENDING, JobStatus.QUEUED)
ALWAYS_TERMINAL = (JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.TIMEOUT)


# Derived predicates

def can_retry(job: Job, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return (
        job.attempt_count < job.max_attempts
        and job.status == JobStatus.FAILED
        and (job.next_retry_at is None or job.next_retry_at <= now)
    )


def can_execute(job: Job, now: Optional[datetime] = None) -> bool:
    return job.status in READY_STATUSES or (
        job.status == JobStatus.FAILED and can_retry(job, now)
    )


def is_terminal(job: Job, now: Optional[datetime] = None) -> bool:
    return job.status in ALWAYS_TERMINAL or (
        job.status == JobStatus.FAILED and not can_retry(job, now)
    )


def is_due(job: Job, now: Optional[datetime] = None) -> bool:
    """Executable and past both its schedule time and its retry backoff."""
    now = now or utcnow()
    if not can_execute(job, now):
        return False
    if job.scheduled_for is not None and job.scheduled_for > now:
        return False
    if job.next_retry_at is not None and job.next_retry_at > now:
        return False
    return True


def status_summary(job: Job, now: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "status": job.status.value,
        "progress": job.progress,
        "stage": job.current_stage or "Waiting",
        "canRetry": can_retry(job, now),
        "duration": job.duration,
        "attempts": job.attempt_count,
        "lastError": job.last_error,
    }


def export_for_report(job: Job) -> Dict[str, Any]:
    data = job.to_dict()
    return {
        key: data[key]
        for key in (
            "id", "name", "modelType", "status", "priority", "progress", "currentStage",
            "createdAt", "startedAt", "completedAt", "processingTimeSeconds",
            "attemptCount", "maxAttempts", "results",
        )
    } | {"modelOptions": job.model_options, "processingParams": job.processing_params}


# Helpers

def _log(
    job: Job,
    now: datetime,
    stage: str,
    message: str,
    level: LogLevel = LogLevel.INFO,
    data: Optional[Dict[str, Any]] = None,
) -> Job:
    entry = LogEntry(timestamp=now, stage=stage, message=message, level=level, data=data)
    return replace(job, processing_log=job.processing_log.append(entry), updated_at=now)


def _require(job: Job, operation: str, *statuses: JobStatus) -> None:
    if job.status not in statuses:
        raise IllegalTransition(job.id, job.status.value, operation)


def _release_claim(job: Job) -> Job:
    return replace(job, worker_id=None, session_id=None, claimed_at=None)


# Transitions

def created(job: Job, now: Optional[datetime] = None) -> Job:
    """Stamp the creation entry on a freshly built snapshot."""
    now = now or job.created_at
    return _log(job, now, "created", f"Job created for model {job.model_type.value}")


def queue(job: Job, now: Optional[datetime] = None) -> Job:
    """Park a pending job in the dispatch queue."""
    now = now or utcnow()
    _require(job, "queue", JobStatus.PENDING)
    job = replace(job, status=JobStatus.QUEUED, current_stage="Queued")
    return _log(job, now, "queue", "Job added to processing queue")


def start(job: Job, worker_id: str, session_id: str, now: Optional[datetime] = None) -> Job:
    now = now or utcnow()
    if not can_execute(job, now):
        raise NotClaimable(job.id, job.status.value)
    if not is_due(job, now):
        raise NotClaimable(job.id, job.status.value, "not due yet")

    attempt = job.attempt_count + 1
    job = replace(
        job,
        status=JobStatus.PROCESSING,
        started_at=job.started_at or now,
        claimed_at=now,
        attempt_count=attempt,
        next_retry_at=None,
        worker_id=worker_id,
        session_id=session_id,
        progress=0,
        current_stage="Starting",
    )
    return _log(
        job, now, "start", f"Processing started (attempt {attempt})",
        data={"workerId": worker_id, "sessionId": session_id},
    )


def update_progress(
    job: Job,
    progress: float,
    stage: str,
    detail: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Job:
    now = now or utcnow()
    _require(job, "update progress of", JobStatus.PROCESSING)
    clamped = int(max(0, min(100, progress)))
    job = replace(job, progress=clamped, current_stage=stage)
    return _log(job, now, "progress", f"Progress: {clamped}% - {stage}", data=detail)


def complete(job: Job, results: RecognitionResults, now: Optional[datetime] = None) -> Job:
    now = now or utcnow()
    _require(job, "complete", JobStatus.PROCESSING)
    if job.results is not None:
        raise IllegalTransition(job.id, job.status.value, "complete", "results already set")

    expected = get_model_spec(job.model_type).result_kind.value
    if results.kind != expected:
        raise ResultKindMismatch(job.id, job.status.value, expected, results.kind)

    attempt_start = job.claimed_at or job.started_at or now
    elapsed = round((now - attempt_start).total_seconds())
    job = _release_claim(replace(
        job,
        status=JobStatus.COMPLETED,
        completed_at=now,
        progress=100,
        current_stage="Completed",
        results=results,
        processing_time_seconds=elapsed,
    ))
    return _log(
        job, now, "complete", "Processing completed successfully",
        data={"processingTime": elapsed, **results.summary_counts()},
    )


def _record_error(job: Job, now: datetime, message: str, context: Optional[Dict[str, Any]]) -> Job:
    entry = ErrorEntry(attempt=job.attempt_count, timestamp=now, message=message, context=context)
    job = replace(job, error_history=job.error_history + (entry,))
    return _log(job, now, "error", message, LogLevel.ERROR, context)


def fail(
    job: Job,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    policy: BackoffPolicy = DEFAULT_BACKOFF,
    now: Optional[datetime] = None,
) -> Job:
    """Record a failed attempt; re-enter pending with backoff while attempts remain."""
    now = now or utcnow()
    _require(job, "fail", JobStatus.PROCESSING)
    job = _release_claim(_record_error(job, now, message, context))

    if job.attempt_count < job.max_attempts:
        delay = policy.delay(job.attempt_count)
        retry_at = now + delay
        job = replace(
            job,
            status=JobStatus.PENDING,
            next_retry_at=retry_at,
            current_stage="Retry scheduled",
        )
        return _log(
            job, now, "retry_scheduled", f"Next attempt scheduled for {retry_at.isoformat()}",
            LogLevel.WARNING,
            {
                "backoffSeconds": int(delay.total_seconds()),
                "attempt": job.attempt_count,
                "maxAttempts": job.max_attempts,
            },
        )

    job = replace(
        job,
        status=JobStatus.FAILED,
        next_retry_at=None,
        completed_at=now,
        current_stage="Failed",
    )
    return _log(
        job, now, "failed", "Processing failed - maximum attempts exceeded", LogLevel.ERROR,
        {"finalAttempt": job.attempt_count, "maxAttempts": job.max_attempts},
    )


def cancel(job: Job, reason: Optional[str] = None, now: Optional[datetime] = None) -> Job:
    """Cancel from any non-terminal status; cancelling twice returns the job unchanged."""
    now = now or utcnow()
    if job.status == JobStatus.CANCELLED:
        return job
    if is_terminal(job, now):
        raise IllegalTransition(job.id, job.status.value, "cancel")

    job = _release_claim(replace(
        job,
        status=JobStatus.CANCELLED,
        completed_at=now,
        next_retry_at=None,
        current_stage="Cancelled",
    ))
    suffix = f": {reason}" if reason else ""
    return _log(
        job, now, "cancel", f"Processing cancelled{suffix}", LogLevel.WARNING,
        {"reason": reason},
    )


def timeout(job: Job, now: Optional[datetime] = None) -> Job:
    """Terminal timeout; never goes through the retry path."""
    now = now or utcnow()
    _require(job, "time out", JobStatus.PROCESSING)
    attempt_start = job.claimed_at or job.started_at or now
    elapsed = round((now - attempt_start).total_seconds())

    job = _release_claim(_record_error(job, now, TIMEOUT_MESSAGE, {"elapsedSeconds": elapsed}))
    job = replace(
        job,
        status=JobStatus.TIMEOUT,
        next_retry_at=None,
        completed_at=now,
        current_stage="Timeout",
    )
    return _log(
        job, now, "timeout", "Processing interrupted by timeout", LogLevel.ERROR,
        {"timeoutAfter": elapsed},
    )
