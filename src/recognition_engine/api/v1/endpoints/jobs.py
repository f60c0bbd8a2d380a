"""Job endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from recognition_engine.core import state_machine
from recognition_engine.core.jobs import JobManager, JobSubmission
from recognition_engine.core.model_types import ModelType
from recognition_engine.core.records import JobStatus
from recognition_engine.core.store import JobFilter

router = APIRouter()


# Request Models
class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ProgressRequest(BaseModel):
    worker_id: str
    progress: float
    stage: str
    detail: Optional[Dict[str, Any]] = None


class SuccessRequest(BaseModel):
    worker_id: str
    results: Dict[str, Any]


class FailureRequest(BaseModel):
    worker_id: str
    message: str = Field(min_length=1)
    context: Optional[Dict[str, Any]] = None


# Endpoints
@router.post("", status_code=201)
async def submit_job(request: JobSubmission) -> dict:
    """Submit a new recognition job."""
    job_manager = JobManager.get_instance()
    job = await job_manager.create_job(request)
    return {"success": True, "data": job.to_dict()}


@router.get("")
async def list_jobs(
    tenant_id: Optional[str] = Query(None),
    status: Optional[JobStatus] = Query(None),
    model_type: Optional[ModelType] = Query(None),
    priority: Optional[int] = Query(None, ge=1, le=4),
    initiated_by: Optional[str] = Query(None),
    target_resource_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> dict:
    """List jobs, newest first."""
    job_manager = JobManager.get_instance()
    filters = JobFilter(
        tenant_id=tenant_id,
        status=status,
        model_type=model_type,
        priority=priority,
        initiated_by=initiated_by,
        target_resource_id=target_resource_id,
    )
    result = await job_manager.list_jobs(filters, page=page, page_size=page_size)
    return {"success": True, "data": result.to_dict()}


@router.get("/stats")
async def get_stats(tenant_id: Optional[str] = Query(None)) -> dict:
    job_manager = JobManager.get_instance()
    return {"success": True, "data": await job_manager.get_jobs_stats(tenant_id)}


@router.get("/{job_id}")
async def get_job(job_id: str) -> dict:
    """Get job status and progress."""
    job_manager = JobManager.get_instance()
    job = await job_manager.get_job(job_id)
    data = job.to_dict()
    data["summary"] = state_machine.status_summary(job)
    return {"success": True, "data": data}


@router.post("/{job_id}/cancel")
async def cancel_job(job_id: str, request: Optional[CancelRequest] = None) -> dict:
    """Cancel a job. Cancelling twice is not an error."""
    job_manager = JobManager.get_instance()
    job = await job_manager.cancel_job(job_id, request.reason if request else None)
    return {"success": True, "data": job.to_dict()}


@router.post("/{job_id}/queue")
async def queue_job(job_id: str) -> dict:
    job_manager = JobManager.get_instance()
    job = await job_manager.queue_job(job_id)
    return {"success": True, "data": job.to_dict()}


# Worker protocol
@router.post("/{job_id}/progress")
async def report_progress(job_id: str, request: ProgressRequest) -> dict:
    job_manager = JobManager.get_instance()
    job = await job_manager.report_progress(
        job_id, request.progress, request.stage, request.detail, worker_id=request.worker_id
    )
    return {"success": True, "data": {"progress": job.progress, "stage": job.current_stage}}


@router.post("/{job_id}/success")
async def report_success(job_id: str, request: SuccessRequest) -> dict:
    """Complete the job with the raw inference payload."""
    job_manager = JobManager.get_instance()
    job = await job_manager.report_success(job_id, request.results, worker_id=request.worker_id)
    return {"success": True, "data": job.to_dict()}


@router.post("/{job_id}/failure")
async def report_failure(job_id: str, request: FailureRequest) -> dict:
    job_manager = JobManager.get_instance()
    job = await job_manager.report_failure(
        job_id, request.message, request.context, worker_id=request.worker_id
    )
    return {"success": True, "data": job.to_dict()}
