"""Tests for the REST API."""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from recognition_engine.core.database import create_engine, create_session_maker, init_db
from recognition_engine.core.jobs import JobManager
from recognition_engine.core.store import JobStore
from recognition_engine.main import app


@pytest.fixture
def client(tmp_path):
    """Client against a manager with its own database; lifespan is not run."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    asyncio.run(init_db(engine))
    JobManager.set_instance(JobManager(JobStore(create_session_maker(engine))))

    yield TestClient(app)

    JobManager.set_instance(None)
    asyncio.run(engine.dispose())


def _submit(client, **overrides):
    body = {
        "tenant_id": "tenant-1",
        "initiated_by": "user-1",
        "target_resource_id": "drawing-1",
        "model_type": "yolo_v8",
    }
    body.update(overrides)
    return client.post("/v1/jobs", json=body)


class TestJobsApi:
    """Tests for job submission and administration."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_submit_and_get(self, client):
        response = _submit(client, priority=1, name="Level 2")

        assert response.status_code == 201
        job = response.json()["data"]
        assert job["status"] == "pending"
        assert job["priority"] == 1

        fetched = client.get(f"/v1/jobs/{job['id']}").json()
        assert fetched["success"] is True
        assert fetched["data"]["name"] == "Level 2"
        assert fetched["data"]["summary"]["stage"] == "Waiting"

    def test_submit_out_of_range(self, client):
        response = _submit(client, priority=9)

        assert response.status_code == 422

    def test_get_unknown(self, client):
        response = client.get("/v1/jobs/missing")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_list_and_stats(self, client):
        _submit(client)
        _submit(client, model_type="tesseract")
        _submit(client, tenant_id="tenant-2")

        listed = client.get("/v1/jobs", params={"tenant_id": "tenant-1", "page_size": 1}).json()["data"]
        assert listed["total"] == 2
        assert listed["pages"] == 2
        assert len(listed["items"]) == 1

        stats = client.get("/v1/jobs/stats", params={"tenant_id": "tenant-1"}).json()["data"]
        assert stats["total"] == 2
        assert stats["byModel"] == {"yolo_v8": 1, "tesseract": 1}

    def test_page_size_bounded(self, client):
        assert client.get("/v1/jobs", params={"page_size": 101}).status_code == 422

    def test_cancel_and_queue(self, client):
        first = _submit(client).json()["data"]
        second = _submit(client).json()["data"]

        cancelled = client.post(f"/v1/jobs/{first['id']}/cancel", json={"reason": "duplicate"})
        again = client.post(f"/v1/jobs/{first['id']}/cancel")
        queued = client.post(f"/v1/jobs/{second['id']}/queue")

        assert cancelled.json()["data"]["status"] == "cancelled"
        assert again.status_code == 200
        assert queued.json()["data"]["status"] == "queued"

        # Cancelled jobs cannot be queued
        assert client.post(f"/v1/jobs/{first['id']}/queue").status_code == 409


class TestWorkerApi:
    """Tests for the worker protocol over HTTP."""

    def test_claim_progress_success(self, client):
        job = _submit(client).json()["data"]

        claim = client.post("/v1/workers/worker-x/claim", json={"session_id": "s-1"})
        assert claim.status_code == 200
        assert claim.json()["data"]["id"] == job["id"]
        assert claim.json()["data"]["sessionId"] == "s-1"

        progress = client.post(
            f"/v1/jobs/{job['id']}/progress",
            json={"worker_id": "worker-x", "progress": -10, "stage": "Uploading"},
        )
        assert progress.json()["data"] == {"progress": 0, "stage": "Uploading"}

        success = client.post(
            f"/v1/jobs/{job['id']}/success",
            json={"worker_id": "worker-x", "results": {"detected_objects": []}},
        )
        data = success.json()["data"]
        assert data["status"] == "completed"
        assert data["results"]["kind"] == "detection"

        late = client.post(
            f"/v1/jobs/{job['id']}/failure",
            json={"worker_id": "worker-x", "message": "too late"},
        )
        assert late.status_code == 409

    def test_success_with_bad_confidence(self, client):
        job = _submit(client).json()["data"]
        client.post("/v1/workers/worker-x/claim", json={"session_id": "s-1"})

        response = client.post(
            f"/v1/jobs/{job['id']}/success",
            json={"worker_id": "worker-x", "results": {"detected_objects": [{"confidence": "high"}]}},
        )

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert client.get(f"/v1/jobs/{job['id']}").json()["data"]["status"] == "processing"

    def test_claim_when_empty(self, client):
        response = client.post("/v1/workers/worker-x/claim")

        assert response.status_code == 204

    def test_failure_reschedules(self, client):
        job = _submit(client).json()["data"]
        client.post("/v1/workers/worker-x/claim")

        response = client.post(
            f"/v1/jobs/{job['id']}/failure",
            json={"worker_id": "worker-x", "message": "service down", "context": {"status": 503}},
        )

        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["nextRetryAt"] is not None
        assert data["errorHistory"][0]["message"] == "service down"
        assert client.post("/v1/workers/worker-y/claim").status_code == 204
