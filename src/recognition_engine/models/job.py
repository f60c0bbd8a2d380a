"""Job record model for persistence."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recognition_engine.core.database import Base
from recognition_engine.core.records import utcnow


class JobRecord(Base):
    """Job record model - persistent job storage."""

    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_status_tenant", "status", "tenant_id"),
        Index("ix_jobs_priority_created", "priority", "created_at"),
        Index("ix_jobs_status_scheduled", "status", "scheduled_for"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    target_resource_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Job info
    name: Mapped[str] = mapped_column(String(100), default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    model_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=3)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    progress: Mapped[int] = mapped_column(Integer, default=0)
    current_stage: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    processing_log: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Retry
    attempt_count: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    next_retry_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error_history: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Claim
    worker_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    timeout_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Payloads
    results: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    model_options: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    processing_params: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Notifications
    callback_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notification_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    enable_webhook: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    processing_time_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Optimistic lock, bumped on every write
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
