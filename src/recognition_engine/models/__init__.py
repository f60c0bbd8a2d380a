"""SQLAlchemy models for the recognition engine."""

from recognition_engine.models.job import JobRecord

__all__ = [
    "JobRecord",
]
