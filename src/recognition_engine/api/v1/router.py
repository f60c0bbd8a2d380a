"""Main API router for v1."""

from fastapi import APIRouter

from recognition_engine.api.v1.endpoints import jobs, workers

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
api_router.include_router(workers.router, prefix="/workers", tags=["Workers"])
