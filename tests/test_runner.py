"""Tests for the HTTP inference runner."""

import aiohttp
import pytest
from aiohttp import test_utils, web

from recognition_engine.core.model_types import ModelType, get_model_spec
from recognition_engine.core.runner import HttpInferenceRunner


class TestHttpInferenceRunner:
    """Tests for HttpInferenceRunner against a local service."""

    def test_build_request_merges_options(self, make_job):
        job = make_job(model_options={"confidence_threshold": 0.3}, processing_params={"page": 2})

        request = HttpInferenceRunner("http://ai").build_request(job)

        assert request["model_type"] == "yolo_v8"
        assert request["model_config"]["confidence_threshold"] == 0.3
        assert request["model_config"]["preprocessing"] == get_model_spec(ModelType.YOLO_V8).preprocessing
        assert request["processing_params"] == {"page": 2}

    async def _serve(self, handler):
        app = web.Application()
        app.router.add_post(get_model_spec(ModelType.YOLO_V8).endpoint, handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        return server

    async def test_run_posts_and_reports(self, make_job):
        seen = {}

        async def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = await request.json()
            return web.json_response({"detected_objects": []})

        reports = []

        async def report(progress, stage, detail=None):
            reports.append(progress)

        server = await self._serve(handler)
        try:
            runner = HttpInferenceRunner(str(server.make_url("")), token="secret")
            job = make_job()
            data = await runner.run(job, report)
        finally:
            await server.close()

        assert data == {"detected_objects": []}
        assert reports == [10, 90]
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["job_id"] == job.id

    async def test_http_error_raises(self, make_job):
        async def handler(request):
            return web.json_response({"error": "overloaded"}, status=503)

        async def report(progress, stage, detail=None):
            pass

        server = await self._serve(handler)
        try:
            with pytest.raises(aiohttp.ClientResponseError):
                await HttpInferenceRunner(str(server.make_url(""))).run(make_job(), report)
        finally:
            await server.close()
