"""Job snapshot value and status enumeration."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from recognition_engine.core.model_types import ModelType
from recognition_engine.core.progress import ErrorEntry, ProgressLog
from recognition_engine.core.results import RecognitionResults, results_to_dict


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_job_id() -> str:
    return str(uuid.uuid4())


class JobStatus(str, Enum):
    """Job status enumeration."""
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Job:
    """Immutable snapshot of one unit of recognition work.

    Transitions in ``state_machine`` return a new snapshot; ``version``
    is the optimistic-lock counter the store checks on write.
    """
    id: str
    tenant_id: str
    initiated_by: str
    target_resource_id: str
    model_type: ModelType
    priority: int = 3
    status: JobStatus = JobStatus.PENDING
    name: str = ""
    description: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    scheduled_for: Optional[datetime] = None
    started_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    processing_time_seconds: Optional[int] = None

    progress: int = 0
    current_stage: Optional[str] = None
    processing_log: ProgressLog = field(default_factory=ProgressLog)

    attempt_count: int = 0
    max_attempts: int = 3
    next_retry_at: Optional[datetime] = None
    error_history: Tuple[ErrorEntry, ...] = ()

    worker_id: Optional[str] = None
    session_id: Optional[str] = None
    timeout_seconds: Optional[int] = None

    results: Optional[RecognitionResults] = None
    model_options: Dict[str, Any] = field(default_factory=dict)
    processing_params: Dict[str, Any] = field(default_factory=dict)

    callback_url: Optional[str] = None
    notification_email: Optional[str] = None
    enable_webhook: bool = False

    version: int = 0

    @property
    def is_processing(self) -> bool:
        return self.status in (JobStatus.PROCESSING, JobStatus.QUEUED)

    @property
    def is_completed(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == JobStatus.FAILED

    @property
    def duration(self) -> Optional[int]:
        """Seconds between start and completion."""
        if not self.started_at or not self.completed_at:
            return None
        return round((self.completed_at - self.started_at).total_seconds())

    @property
    def last_error(self) -> Optional[str]:
        return self.error_history[-1].message if self.error_history else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "initiatedBy": self.initiated_by,
            "targetResourceId": self.target_resource_id,
            "name": self.name,
            "description": self.description,
            "modelType": self.model_type.value,
            "priority": self.priority,
            "status": self.status.value,
            "progress": self.progress,
            "currentStage": self.current_stage,
            "attemptCount": self.attempt_count,
            "maxAttempts": self.max_attempts,
            "nextRetryAt": self.next_retry_at.isoformat() if self.next_retry_at else None,
            "workerId": self.worker_id,
            "sessionId": self.session_id,
            "timeoutSeconds": self.timeout_seconds,
            "results": results_to_dict(self.results) if self.results is not None else None,
            "processingLog": self.processing_log.to_list(),
            "errorHistory": [entry.to_dict() for entry in self.error_history],
            "createdAt": self.created_at.isoformat(),
            "scheduledFor": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "processingTimeSeconds": self.processing_time_seconds,
        }
