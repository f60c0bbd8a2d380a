"""Pytest configuration and fixtures."""

import asyncio
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Keep the settings' data directory out of the home directory
os.environ.setdefault("RECOG_DATA_PATH", tempfile.mkdtemp(prefix="recognition-tests-"))

from sqlalchemy.pool import NullPool  # noqa: E402

from recognition_engine.core.database import create_engine, create_session_maker, init_db  # noqa: E402
from recognition_engine.core.jobs import JobManager  # noqa: E402
from recognition_engine.core.model_types import ModelType  # noqa: E402
from recognition_engine.core.notifications import NotificationSink  # noqa: E402
from recognition_engine.core.records import Job, new_job_id  # noqa: E402
from recognition_engine.core.runner import InferenceRunner  # noqa: E402
from recognition_engine.core.store import JobStore  # noqa: E402


class FakeRunner(InferenceRunner):
    """Inference runner returning a canned detection response."""

    def __init__(self):
        self.response = {
            "detected_objects": [
                {
                    "id": "obj-1",
                    "type": "door",
                    "category": "architectural",
                    "confidence": 0.9,
                    "bounding_box": {"x": 0, "y": 0, "width": 10, "height": 20},
                },
            ],
        }
        self.error = None
        self.gate = None
        self.started = asyncio.Event()
        self.calls = []

    async def run(self, job, report):
        self.calls.append(job.id)
        await report(10, "Sending to AI service", None)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        await report(90, "Processing results", None)
        return self.response


class RecordingSink(NotificationSink):
    def __init__(self):
        self.events = []

    async def send(self, event, job):
        self.events.append(event)


@pytest.fixture
async def engine(tmp_path):
    """Fresh file-backed database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}", poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return JobStore(create_session_maker(engine))


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
async def manager(store, runner, sink):
    """Job manager wired with the fake runner and a recording sink."""
    manager = JobManager(
        store,
        runner=runner,
        sinks=[sink],
        worker_count=1,
        poll_interval=0.01,
        cancel_poll_interval=0.02,
    )
    JobManager.set_instance(manager)
    yield manager
    await manager.stop()
    JobManager.set_instance(None)


@pytest.fixture
def make_job():
    """Build an unsaved job snapshot."""

    def factory(**overrides):
        fields = {
            "id": new_job_id(),
            "tenant_id": "tenant-1",
            "initiated_by": "user-1",
            "target_resource_id": "drawing-1",
            "model_type": ModelType.YOLO_V8,
        }
        fields.update(overrides)
        return Job(**fields)

    return factory


@pytest.fixture
def submission():
    """Valid submission fields for ``JobManager.submit``."""
    return {
        "tenant_id": "tenant-1",
        "initiated_by": "user-1",
        "target_resource_id": "drawing-1",
        "model_type": "yolo_v8",
    }
