"""Tests for the Resend-backed notification dispatcher."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from caseportal.core.config import Settings
from caseportal.core.errors import NotificationFailure
from caseportal.services.notifications import (
    CaseEmailContext,
    NotificationService,
    build_notification_service,
    dispatch_case_submitted,
    dispatch_status_changed,
)

CTX = CaseEmailContext(
    case_id="0a1b2c3d-1111-2222-3333-444455556666",
    name="Alice <Example>",
    email="alice@example.com",
    urgency="high",
    status="in_progress",
    case_summary="Summary with <b>markup</b> that must be escaped in HTML bodies.",
    service_type="misconduct-review",
)


class _Recorder:
    """MockTransport handler capturing each request."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"id": f"msg-{len(self.requests)}"})

    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def _service(handler, api_key: str = "re_test") -> NotificationService:
    return NotificationService(
        api_key,
        from_email="Civil CI <noreply@civilci.com>",
        admin_email="intake@civilci.com",
        site_url="https://civilci.com/",
        api_url="https://resend.test/emails",
        transport=httpx.MockTransport(handler),
    )


class TestSendEmail:

    def test_posts_to_provider_with_bearer_key(self):
        recorder = _Recorder()
        sent = asyncio.run(_service(recorder).send_email("x@y.test", "Hi", "<p>Hi</p>", "Hi"))
        assert sent is True
        request = recorder.requests[0]
        assert request.url == "https://resend.test/emails"
        assert request.headers["Authorization"] == "Bearer re_test"
        assert recorder.payloads()[0] == {
            "from": "Civil CI <noreply@civilci.com>",
            "to": ["x@y.test"],
            "subject": "Hi",
            "html": "<p>Hi</p>",
            "text": "Hi",
        }

    def test_unconfigured_service_skips_without_calling_provider(self):
        recorder = _Recorder()
        service = _service(recorder, api_key="")
        assert service.configured is False
        assert asyncio.run(service.send_email("x@y.test", "Hi", "<p>Hi</p>")) is False
        assert recorder.requests == []

    def test_provider_rejection_raises(self):
        with pytest.raises(NotificationFailure):
            asyncio.run(_service(_Recorder(status_code=422)).send_email("x@y.test", "Hi", "<p>Hi</p>"))

    def test_transport_error_raises(self):
        def _down(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NotificationFailure):
            asyncio.run(_service(_down).send_email("x@y.test", "Hi", "<p>Hi</p>"))


class TestLifecycleEmails:

    def test_new_case_goes_to_admin(self):
        recorder = _Recorder()
        asyncio.run(_service(recorder).send_new_case_notification(CTX))
        payload = recorder.payloads()[0]
        assert payload["to"] == ["intake@civilci.com"]
        assert payload["subject"] == "[Civil CI] New HIGH Case Review: Alice <Example>"
        assert "Service: Misconduct Review" in payload["text"]
        assert "https://civilci.com/admin/cases" in payload["text"]
        assert "<b>markup</b>" not in payload["html"]
        assert "&lt;b&gt;markup&lt;/b&gt;" in payload["html"]

    def test_confirmation_carries_reference(self):
        recorder = _Recorder()
        asyncio.run(_service(recorder).send_case_confirmation(CTX))
        payload = recorder.payloads()[0]
        assert payload["to"] == ["alice@example.com"]
        assert payload["subject"] == "[Civil CI] Case Review Received - Reference 0A1B2C3D"
        assert "0A1B2C3D" in payload["text"]

    def test_status_update_describes_transition(self):
        recorder = _Recorder()
        asyncio.run(_service(recorder).send_status_update(CTX, "pending"))
        payload = recorder.payloads()[0]
        assert payload["subject"] == "[Civil CI] Case Status Updated: IN_PROGRESS"
        assert "pending -> in_progress" in payload["text"]
        assert "started working on your case" in payload["text"]


class TestDispatch:

    def test_case_submitted_sends_both_emails(self):
        recorder = _Recorder()
        asyncio.run(dispatch_case_submitted(_service(recorder), CTX))
        recipients = sorted(p["to"][0] for p in recorder.payloads())
        assert recipients == ["alice@example.com", "intake@civilci.com"]

    def test_one_failed_send_does_not_block_the_other(self):
        recorder = _Recorder()

        def _admin_inbox_down(request):
            if json.loads(request.content)["to"] == ["intake@civilci.com"]:
                return httpx.Response(500, text="boom")
            return recorder(request)

        asyncio.run(dispatch_case_submitted(_service(_admin_inbox_down), CTX))
        assert [p["to"] for p in recorder.payloads()] == [["alice@example.com"]]

    def test_status_changed_swallows_failures(self):
        asyncio.run(dispatch_status_changed(_service(_Recorder(status_code=503)), CTX, "pending"))

    def test_unconfigured_dispatch_is_a_no_op(self):
        recorder = _Recorder()
        asyncio.run(dispatch_case_submitted(_service(recorder, api_key=""), CTX))
        assert recorder.requests == []


class TestBuildNotificationService:

    def test_configured_from_settings(self):
        service = build_notification_service(
            Settings(resend_api_key="re_live", admin_email="ops@civilci.com")
        )
        assert service.configured is True
        assert service.admin_email == "ops@civilci.com"

    def test_unconfigured_without_key(self):
        assert build_notification_service(Settings(resend_api_key="")).configured is False


class TestAdminEmailEndpoints:
    """GET /api/admin/email-status and POST /api/admin/email-test."""

    def test_status_reports_configuration(self, client, admin_headers):
        resp = client.get("/api/admin/email-status", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "configured": True,
            "fromEmail": "Civil CI <noreply@civilci.com>",
            "adminEmail": "intake@civilci.com",
        }

    def test_status_is_admin_only(self, client, alice_headers):
        assert client.get("/api/admin/email-status", headers=alice_headers).status_code == 403

    def test_send_test_email(self, client, admin_headers, notifier):
        resp = client.post("/api/admin/email-test", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["sent"] is True
        assert notifier.sent[-1]["to"] == "intake@civilci.com"

    def test_send_test_email_reports_provider_failure(self, client, admin_headers, notifier):
        notifier.fail = True
        resp = client.post("/api/admin/email-test", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["sent"] is False
