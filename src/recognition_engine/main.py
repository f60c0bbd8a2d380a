"""Recognition Engine - Main FastAPI Application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recognition_engine.api.v1.router import api_router
from recognition_engine.core.config import settings
from recognition_engine.core.database import async_session_maker, close_db, init_db
from recognition_engine.core.errors import (
    IllegalTransition,
    JobNotFound,
    JobValidationError,
    StaleJobError,
)
from recognition_engine.core.jobs import JobManager
from recognition_engine.core.notifications import LoggingSink, WebhookSink
from recognition_engine.core.runner import HttpInferenceRunner
from recognition_engine.core.store import JobStore
from recognition_engine.core.watchdog import WatchdogTimer

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_job_manager() -> JobManager:
    """Wire the job manager against the configured database and AI service."""
    runner = HttpInferenceRunner(settings.AI_SERVICE_URL, settings.AI_SERVICE_TOKEN)
    sinks = [LoggingSink(), WebhookSink(settings.WEBHOOK_URL, timeout=settings.WEBHOOK_TIMEOUT)]
    return JobManager.from_settings(JobStore(async_session_maker), runner=runner, sinks=sinks)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting %s v%s", settings.APP_NAME, settings.VERSION)

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Start job manager
    job_manager = build_job_manager()
    JobManager.set_instance(job_manager)
    await job_manager.start()

    # Start watchdog
    watchdog = WatchdogTimer(
        job_manager,
        interval=settings.WATCHDOG_INTERVAL,
        default_budget=settings.JOB_TIMEOUT,
    )
    await watchdog.start()

    yield

    # Cleanup
    logger.info("Shutting down %s...", settings.APP_NAME)
    await watchdog.stop()
    await job_manager.stop()
    JobManager.set_instance(None)
    await close_db()
    logger.info("Shutdown complete")


def _error(status_code: int, exc: Exception, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(exc), **extra},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Asynchronous AI recognition job engine",
        version=settings.VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(JobNotFound)
    async def not_found_handler(request: Request, exc: JobNotFound):
        return _error(404, exc)

    @app.exception_handler(JobValidationError)
    async def validation_handler(request: Request, exc: JobValidationError):
        return _error(422, exc, details=exc.errors)

    @app.exception_handler(IllegalTransition)
    async def transition_handler(request: Request, exc: IllegalTransition):
        return _error(409, exc)

    @app.exception_handler(StaleJobError)
    async def stale_handler(request: Request, exc: StaleJobError):
        return _error(409, exc)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "services": {
                "database": True,
                "aiService": settings.AI_SERVICE_URL,
                "webhook": bool(settings.WEBHOOK_URL),
            },
        }

    # Include API router
    app.include_router(api_router, prefix="/v1")

    return app


# Create app instance
app = create_app()


def main():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "recognition_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )


if __name__ == "__main__":
    main()
