"""Inference runner interface and HTTP implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from recognition_engine.core.model_types import get_model_spec
from recognition_engine.core.records import Job

logger = logging.getLogger(__name__)

# report(progress, stage, detail)
ProgressCallback = Callable[[float, str, Optional[Dict[str, Any]]], Awaitable[None]]


class InferenceRunner(ABC):
    """Performs the recognition work for one claimed job."""

    @abstractmethod
    async def run(self, job: Job, report: ProgressCallback) -> Dict[str, Any]:
        """Run inference and return the raw response payload.

        Raising marks the attempt as failed. ``report`` raises
        ``IllegalTransition`` once the job stops being ours (cancelled or
        timed out); runners should let it propagate.
        """
        ...


class HttpInferenceRunner(InferenceRunner):
    """Calls the external AI service endpoint for the job's model."""

    def __init__(self, base_url: str, token: str = ""):
        self._base_url = base_url.rstrip("/")
        self._token = token

    def build_request(self, job: Job) -> Dict[str, Any]:
        spec = get_model_spec(job.model_type)
        model_config = {
            "confidence_threshold": spec.confidence_threshold,
            "categories": [c.value for c in spec.categories],
            "preprocessing": spec.preprocessing,
            **job.model_options,
        }
        return {
            "job_id": job.id,
            "tenant_id": job.tenant_id,
            "target_resource_id": job.target_resource_id,
            "model_type": job.model_type.value,
            "model_config": model_config,
            "processing_params": job.processing_params,
        }

    async def run(self, job: Job, report: ProgressCallback) -> Dict[str, Any]:
        spec = get_model_spec(job.model_type)
        url = f"{self._base_url}{spec.endpoint}"
        timeout = aiohttp.ClientTimeout(total=job.timeout_seconds or spec.timeout)
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}

        await report(10, "Sending to AI service", {"endpoint": spec.endpoint})
        logger.info("Job %s -> %s", job.id, url)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=self.build_request(job), headers=headers) as resp:
                resp.raise_for_status()
                data = await resp.json()

        await report(90, "Processing results", None)
        return data
