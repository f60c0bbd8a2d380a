"""Terminal-transition notifications."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import aiohttp

from recognition_engine.core.records import Job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobEvent:
    """Emitted once per terminal transition."""
    job_id: str
    status: str
    tenant_id: str
    initiated_by: str

    @classmethod
    def from_job(cls, job: Job) -> "JobEvent":
        return cls(
            job_id=job.id,
            status=job.status.value,
            tenant_id=job.tenant_id,
            initiated_by=job.initiated_by,
        )

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "status": self.status,
            "tenantId": self.tenant_id,
            "initiatedBy": self.initiated_by,
        }


class NotificationSink(ABC):
    """Receives terminal job events. Failures are logged by the caller, never retried."""

    @abstractmethod
    async def send(self, event: JobEvent, job: Job) -> None:
        ...


class LoggingSink(NotificationSink):
    async def send(self, event: JobEvent, job: Job) -> None:
        logger.info("Job %s finished with status %s", event.job_id, event.status)


class WebhookSink(NotificationSink):
    """POSTs the event to the job's callback URL, or to a global URL."""

    def __init__(self, default_url: Optional[str] = None, timeout: float = 10.0):
        self._default_url = default_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def target_url(self, job: Job) -> Optional[str]:
        if job.enable_webhook and job.callback_url:
            return job.callback_url
        return self._default_url

    async def send(self, event: JobEvent, job: Job) -> None:
        url = self.target_url(job)
        if not url:
            return

        payload = event.to_dict()
        if job.notification_email:
            payload["notificationEmail"] = job.notification_email

        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(url, json=payload) as resp:
                if resp.status >= 400:
                    raise RuntimeError(f"Webhook {url} returned HTTP {resp.status}")
        logger.info("Webhook delivered for job %s to %s", event.job_id, url)
