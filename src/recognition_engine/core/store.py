"""Job persistence with optimistic versioning."""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recognition_engine.core.errors import JobNotFound, StaleJobError
from recognition_engine.core.model_types import ModelType
from recognition_engine.core.progress import ErrorEntry, ProgressLog
from recognition_engine.core.records import Job, JobStatus
from recognition_engine.core.results import parse_results, results_to_dict
from recognition_engine.models.job import JobRecord

logger = logging.getLogger(__name__)


@dataclass
class JobFilter:
    """Equality filters for listing jobs; ``None`` means any."""
    tenant_id: Optional[str] = None
    status: Optional[JobStatus] = None
    model_type: Optional[ModelType] = None
    priority: Optional[int] = None
    initiated_by: Optional[str] = None
    target_resource_id: Optional[str] = None


@dataclass
class Page:
    items: List[Job] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict:
        return {
            "items": [job.to_dict() for job in self.items],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "pages": self.pages,
        }


def _to_values(job: Job) -> Dict[str, Any]:
    return {
        "tenant_id": job.tenant_id,
        "initiated_by": job.initiated_by,
        "target_resource_id": job.target_resource_id,
        "name": job.name,
        "description": job.description,
        "model_type": job.model_type.value,
        "priority": job.priority,
        "status": job.status.value,
        "progress": job.progress,
        "current_stage": job.current_stage,
        "processing_log": job.processing_log.to_list(),
        "attempt_count": job.attempt_count,
        "max_attempts": job.max_attempts,
        "next_retry_at": job.next_retry_at,
        "error_history": [entry.to_dict() for entry in job.error_history],
        "worker_id": job.worker_id,
        "session_id": job.session_id,
        "timeout_seconds": job.timeout_seconds,
        "results": results_to_dict(job.results) if job.results is not None else None,
        "model_options": job.model_options,
        "processing_params": job.processing_params,
        "callback_url": job.callback_url,
        "notification_email": job.notification_email,
        "enable_webhook": job.enable_webhook,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
        "scheduled_for": job.scheduled_for,
        "started_at": job.started_at,
        "claimed_at": job.claimed_at,
        "completed_at": job.completed_at,
        "processing_time_seconds": job.processing_time_seconds,
    }


def _from_record(r: JobRecord) -> Job:
    return Job(
        id=r.id,
        tenant_id=r.tenant_id,
        initiated_by=r.initiated_by,
        target_resource_id=r.target_resource_id,
        name=r.name or "",
        description=r.description,
        model_type=ModelType(r.model_type),
        priority=r.priority,
        status=JobStatus(r.status),
        progress=r.progress,
        current_stage=r.current_stage,
        processing_log=ProgressLog.from_list(r.processing_log),
        attempt_count=r.attempt_count,
        max_attempts=r.max_attempts,
        next_retry_at=r.next_retry_at,
        error_history=tuple(ErrorEntry.from_dict(e) for e in r.error_history or []),
        worker_id=r.worker_id,
        session_id=r.session_id,
        timeout_seconds=r.timeout_seconds,
        results=parse_results(r.results) if r.results else None,
        model_options=r.model_options or {},
        processing_params=r.processing_params or {},
        callback_url=r.callback_url,
        notification_email=r.notification_email,
        enable_webhook=bool(r.enable_webhook),
        created_at=r.created_at,
        updated_at=r.updated_at,
        scheduled_for=r.scheduled_for,
        started_at=r.started_at,
        claimed_at=r.claimed_at,
        completed_at=r.completed_at,
        processing_time_seconds=r.processing_time_seconds,
        version=r.version,
    )


class JobStore:
    """Durable job storage keyed by job id.

    Writes never read-then-assign: ``save`` is one conditional UPDATE on
    ``(id, version)`` so concurrent writers cannot both win.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def insert(self, job: Job) -> Job:
        async with self._session_maker() as db:
            db.add(JobRecord(id=job.id, version=job.version, **_to_values(job)))
            await db.commit()
        logger.info("Created persistent job %s", job.id)
        return job

    async def find(self, job_id: str) -> Optional[Job]:
        async with self._session_maker() as db:
            result = await db.execute(select(JobRecord).where(JobRecord.id == job_id))
            record = result.scalar_one_or_none()
            return _from_record(record) if record else None

    async def get(self, job_id: str) -> Job:
        job = await self.find(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def save(
        self,
        job: Job,
        expected_version: int,
        statuses: Optional[Sequence[JobStatus]] = None,
    ) -> Job:
        """Write ``job`` only if the stored row is still at ``expected_version``.

        ``statuses`` further restricts the write to rows currently in one of
        those statuses. Raises ``StaleJobError`` when no row matched.
        """
        conditions = [JobRecord.id == job.id, JobRecord.version == expected_version]
        if statuses:
            conditions.append(JobRecord.status.in_([s.value for s in statuses]))

        async with self._session_maker() as db:
            result = await db.execute(
                update(JobRecord)
                .where(*conditions)
                .values(**_to_values(job), version=expected_version + 1)
            )
            await db.commit()

        if result.rowcount != 1:
            raise StaleJobError(job.id, expected_version)
        return replace(job, version=expected_version + 1)

    async def list(self, filters: Optional[JobFilter] = None, page: int = 1, page_size: int = 20) -> Page:
        """Fetch a page of jobs (most recent first)."""
        filters = filters or JobFilter()
        conditions = []
        if filters.tenant_id is not None:
            conditions.append(JobRecord.tenant_id == filters.tenant_id)
        if filters.status is not None:
            conditions.append(JobRecord.status == JobStatus(filters.status).value)
        if filters.model_type is not None:
            conditions.append(JobRecord.model_type == ModelType(filters.model_type).value)
        if filters.priority is not None:
            conditions.append(JobRecord.priority == filters.priority)
        if filters.initiated_by is not None:
            conditions.append(JobRecord.initiated_by == filters.initiated_by)
        if filters.target_resource_id is not None:
            conditions.append(JobRecord.target_resource_id == filters.target_resource_id)

        async with self._session_maker() as db:
            total = await db.scalar(select(func.count(JobRecord.id)).where(*conditions))
            result = await db.execute(
                select(JobRecord)
                .where(*conditions)
                .order_by(JobRecord.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            items = [_from_record(r) for r in result.scalars().all()]

        return Page(items=items, total=total or 0, page=page, page_size=page_size)

    async def fetch_candidates(self, now: datetime, limit: int = 10) -> List[Job]:
        """Due jobs in dispatch order: priority, schedule time, submission time."""
        ready = and_(
            JobRecord.status.in_([JobStatus.PENDING.value, JobStatus.QUEUED.value]),
            or_(JobRecord.scheduled_for.is_(None), JobRecord.scheduled_for <= now),
        )
        retryable = and_(
            JobRecord.status == JobStatus.FAILED.value,
            JobRecord.attempt_count < JobRecord.max_attempts,
        )
        async with self._session_maker() as db:
            result = await db.execute(
                select(JobRecord)
                .where(
                    or_(ready, retryable),
                    or_(JobRecord.next_retry_at.is_(None), JobRecord.next_retry_at <= now),
                )
                .order_by(
                    JobRecord.priority,
                    func.coalesce(JobRecord.scheduled_for, now),
                    JobRecord.created_at,
                )
                .limit(limit)
            )
            return [_from_record(r) for r in result.scalars().all()]

    async def list_processing(self) -> List[Job]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(JobRecord).where(JobRecord.status == JobStatus.PROCESSING.value)
            )
            return [_from_record(r) for r in result.scalars().all()]

    async def min_job_timeout(self) -> Optional[int]:
        """Smallest per-job timeout among jobs that may still be processed."""
        live = [JobStatus.PENDING.value, JobStatus.QUEUED.value, JobStatus.PROCESSING.value]
        async with self._session_maker() as db:
            result = await db.execute(
                select(func.min(JobRecord.timeout_seconds)).where(JobRecord.status.in_(live))
            )
            return result.scalar()

    async def stats(self, tenant_id: Optional[str] = None) -> dict:
        """Get job statistics."""
        scope = [JobRecord.tenant_id == tenant_id] if tenant_id is not None else []

        async with self._session_maker() as db:
            by_status_rows = await db.execute(
                select(JobRecord.status, func.count(JobRecord.id).label("count"))
                .where(*scope)
                .group_by(JobRecord.status)
            )
            by_model_rows = await db.execute(
                select(JobRecord.model_type, func.count(JobRecord.id).label("count"))
                .where(*scope)
                .group_by(JobRecord.model_type)
            )
            avg_rows = await db.execute(
                select(
                    JobRecord.model_type,
                    func.avg(JobRecord.processing_time_seconds).label("avg_time"),
                )
                .where(
                    *scope,
                    JobRecord.status == JobStatus.COMPLETED.value,
                    JobRecord.processing_time_seconds.is_not(None),
                )
                .group_by(JobRecord.model_type)
            )

            by_status = {status.value: 0 for status in JobStatus}
            for row in by_status_rows.all():
                by_status[row.status] = row.count
            by_model = {row.model_type: row.count for row in by_model_rows.all()}
            avg_time = {row.model_type: float(row.avg_time) for row in avg_rows.all()}

        total = sum(by_status.values())
        return {
            "total": total,
            "byStatus": by_status,
            "byModel": by_model,
            "avgProcessingTime": avg_time,
            "successRate": (by_status[JobStatus.COMPLETED.value] / total) * 100 if total else 0.0,
        }
