"""Tests for terminal notifications."""

from aiohttp import test_utils, web

from recognition_engine.core.notifications import JobEvent, LoggingSink, NotificationSink, WebhookSink
from recognition_engine.core.records import JobStatus


class FailingSink(NotificationSink):
    async def send(self, event, job):
        raise RuntimeError("sink unavailable")


class TestManagerNotifications:
    """Sink delivery never touches job state."""

    async def test_failing_sink_does_not_affect_job(self, manager, submission, sink):
        manager.add_sink(FailingSink())
        job = await manager.submit(**submission)

        cancelled = await manager.cancel_job(job.id)
        await manager.drain_notifications()

        assert cancelled.status == JobStatus.CANCELLED
        assert (await manager.get_job(job.id)).status == JobStatus.CANCELLED
        assert [e.job_id for e in sink.events] == [job.id]

    async def test_event_fields(self, manager, submission, sink):
        job = await manager.submit(**submission)
        await manager.cancel_job(job.id)
        await manager.drain_notifications()

        assert sink.events[0].to_dict() == {
            "jobId": job.id,
            "status": "cancelled",
            "tenantId": "tenant-1",
            "initiatedBy": "user-1",
        }

    async def test_logging_sink(self, make_job):
        job = make_job()

        await LoggingSink().send(JobEvent.from_job(job), job)


class TestWebhookSink:
    """Tests for webhook delivery."""

    def test_job_callback_preferred_when_enabled(self, make_job):
        sink = WebhookSink("http://global.example/hook")

        enabled = make_job(callback_url="http://tenant.example/cb", enable_webhook=True)
        disabled = make_job(callback_url="http://tenant.example/cb", enable_webhook=False)

        assert sink.target_url(enabled) == "http://tenant.example/cb"
        assert sink.target_url(disabled) == "http://global.example/hook"
        assert WebhookSink().target_url(disabled) is None

    async def test_no_url_is_noop(self, make_job):
        job = make_job()

        await WebhookSink().send(JobEvent.from_job(job), job)

    async def test_posts_event(self, make_job):
        received = []

        async def handler(request):
            received.append(await request.json())
            return web.json_response({"ok": True})

        app = web.Application()
        app.router.add_post("/hook", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            job = make_job(notification_email="ops@example.com")
            sink = WebhookSink(str(server.make_url("/hook")))
            await sink.send(JobEvent.from_job(job), job)
        finally:
            await server.close()

        assert received == [{
            "jobId": job.id,
            "status": "pending",
            "tenantId": "tenant-1",
            "initiatedBy": "user-1",
            "notificationEmail": "ops@example.com",
        }]
