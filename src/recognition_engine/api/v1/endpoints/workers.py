"""Worker protocol endpoints for out-of-process workers."""

import uuid
from typing import Optional

from fastapi import APIRouter, Response
from pydantic import BaseModel

from recognition_engine.core.jobs import JobManager

router = APIRouter()


class ClaimRequest(BaseModel):
    session_id: Optional[str] = None


@router.post("/{worker_id}/claim")
async def claim_next(worker_id: str, request: Optional[ClaimRequest] = None):
    """Claim the next due job; 204 when nothing is available."""
    job_manager = JobManager.get_instance()
    session_id = (request.session_id if request else None) or f"session-{uuid.uuid4().hex[:12]}"
    job = await job_manager.claim_next(worker_id, session_id)
    if job is None:
        return Response(status_code=204)
    return {"success": True, "data": job.to_dict()}
