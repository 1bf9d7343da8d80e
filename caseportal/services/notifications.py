"""
Notification Dispatcher
=======================
Transactional email for case lifecycle events, sent through the Resend
REST API with ``httpx``.

Every send is best-effort: the dispatch helpers at the bottom of this
module catch and log failures, so a broken mail provider can never fail
the request that triggered the email. Nothing is retried.

The service is constructed explicitly (see ``build_notification_service``)
and injected into the routes; whether it is configured is fixed at
construction time.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import httpx

from caseportal.core.config import Settings
from caseportal.core.errors import NotificationFailure

logger = logging.getLogger(__name__)

SERVICE_LABELS = {
    "case-reconstruction": "Case Reconstruction",
    "misconduct-review": "Misconduct Review",
    "affidavit-support": "Affidavit Support",
    "pro-se-support": "Pro-Se Support",
    "strategy-session": "Strategy Session",
    "document-organization": "Document Organization",
    "complaint-support": "Complaint Support",
    "timeline-map": "Timeline Map",
    "accountability-package": "Accountability Package",
    "not-sure": "Not Sure Yet",
}

STATUS_MESSAGES = {
    "in_review": "Your case is under detailed review. We may reach out if we need more information.",
    "in_progress": "Our team has started working on your case.",
    "completed": "We have completed our review of your case. Expect a follow-up with our findings.",
    "closed": "Your case has been closed. Contact us if you have questions or need it reopened.",
}

_DEFAULT_STATUS_MESSAGE = "Your case status has been updated."


@dataclass(frozen=True)
class CaseEmailContext:
    """Detached snapshot of the case fields an email needs.

    Background sends run after the request's DB session is closed, so
    they never touch ORM rows.
    """

    case_id: str
    name: str
    email: str
    urgency: str
    status: str
    case_summary: str = ""
    service_type: Optional[str] = None

    @property
    def reference(self) -> str:
        return self.case_id[:8].upper()

    @classmethod
    def from_case(cls, case) -> "CaseEmailContext":
        return cls(
            case_id=case.id,
            name=case.name,
            email=case.email,
            urgency=_value(case.urgency),
            status=_value(case.status),
            case_summary=case.case_summary,
            service_type=case.service_type,
        )


def _value(field) -> str:
    return getattr(field, "value", field)


def _wrap_html(heading: str, paragraphs: Sequence[str]) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>"
        f"<body><h1>Civil CI</h1><h2>{html.escape(heading)}</h2>{body}"
        "<p><small>Civil CI - Civil Citizens Intelligence</small></p></body></html>"
    )


class NotificationService:
    """Resend-backed email sender.

    ``configured`` is decided once, from whether an API key was supplied.
    Unconfigured services log what would have been sent and return False.
    """

    def __init__(
        self,
        api_key: str = "",
        *,
        from_email: str,
        admin_email: str,
        site_url: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.configured = bool(api_key)
        self.from_email = from_email
        self.admin_email = admin_email
        self.site_url = site_url.rstrip("/")
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    async def send_email(
        self,
        to: Union[str, list[str]],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """Send one email. Raises NotificationFailure on provider errors."""
        if not self.configured:
            logger.info("Email not configured - would send to=%s subject=%r", to, subject)
            return False

        payload = {
            "from": self.from_email,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            payload["text"] = text_body

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
        except httpx.HTTPError as exc:
            raise NotificationFailure(f"Email transport error: {exc}") from exc

        if resp.status_code >= 400:
            raise NotificationFailure(
                f"Email provider rejected message ({resp.status_code}): {resp.text[:200]}"
            )

        message_id = None
        try:
            message_id = resp.json().get("id")
        except ValueError:
            pass
        logger.info("Email sent: id=%s subject=%r", message_id, subject)
        return True

    # -- lifecycle emails ---------------------------------------------------

    async def send_new_case_notification(self, ctx: CaseEmailContext) -> bool:
        service = (
            SERVICE_LABELS.get(ctx.service_type, ctx.service_type)
            if ctx.service_type
            else "Not specified"
        )
        review_url = f"{self.site_url}/admin/cases"
        text = (
            "New Case Review Submission\n\n"
            f"Name: {ctx.name}\n"
            f"Email: {ctx.email}\n"
            f"Service: {service}\n"
            f"Urgency: {ctx.urgency.upper()}\n\n"
            f"Case Summary:\n{ctx.case_summary}\n\n"
            f"Review in Admin Portal: {review_url}\n\n"
            f"Case ID: {ctx.case_id}\n"
        )
        html_body = _wrap_html(
            "New Case Review Submission",
            [
                f"Name: {html.escape(ctx.name)}",
                f"Email: {html.escape(ctx.email)}",
                f"Service: {html.escape(service)}",
                f"Urgency: {ctx.urgency.upper()}",
                html.escape(ctx.case_summary),
                f"<a href=\"{review_url}\">Review in Admin Portal</a>",
                f"Case ID: {ctx.case_id}",
            ],
        )
        return await self.send_email(
            self.admin_email,
            f"[Civil CI] New {ctx.urgency.upper()} Case Review: {ctx.name}",
            html_body,
            text,
        )

    async def send_case_confirmation(self, ctx: CaseEmailContext) -> bool:
        text = (
            f"Thank you, {ctx.name}\n\n"
            "We have received your case review request. Your submission is now under review by our team.\n\n"
            f"Your Case Reference: {ctx.reference}\n\n"
            "What happens next?\n"
            "1. Our team will review your submission within 24-48 hours\n"
            "2. We may reach out for additional information if needed\n"
            "3. You'll receive an email when your case status is updated\n"
        )
        html_body = _wrap_html(
            f"Thank you, {ctx.name}",
            [
                "We have received your case review request.",
                f"Your Case Reference: <strong>{ctx.reference}</strong>",
                "Our team will review your submission within 24-48 hours. "
                "You'll receive an email when your case status is updated.",
            ],
        )
        return await self.send_email(
            ctx.email,
            f"[Civil CI] Case Review Received - Reference {ctx.reference}",
            html_body,
            text,
        )

    async def send_status_update(self, ctx: CaseEmailContext, previous_status: str) -> bool:
        message = STATUS_MESSAGES.get(ctx.status, _DEFAULT_STATUS_MESSAGE)
        text = (
            f"Hello, {ctx.name}\n\n"
            "Your case status has been updated.\n\n"
            f"Status Change: {previous_status} -> {ctx.status}\n\n"
            f"{message}\n\n"
            f"Case Reference: {ctx.reference}\n"
        )
        html_body = _wrap_html(
            f"Hello, {ctx.name}",
            [
                f"Status Change: {previous_status} &rarr; {ctx.status}",
                html.escape(message),
                f"Case Reference: {ctx.reference}",
            ],
        )
        return await self.send_email(
            ctx.email,
            f"[Civil CI] Case Status Updated: {ctx.status.upper()}",
            html_body,
            text,
        )

    async def send_test_email(self) -> bool:
        return await self.send_email(
            self.admin_email,
            "[Civil CI] Test email",
            _wrap_html("Test email", ["Email delivery is configured correctly."]),
            "Email delivery is configured correctly.",
        )


def build_notification_service(settings: Settings) -> NotificationService:
    service = NotificationService(
        settings.resend_api_key,
        from_email=settings.from_email,
        admin_email=settings.admin_email,
        site_url=settings.site_url,
        api_url=settings.resend_api_url,
        timeout=settings.email_timeout_seconds,
    )
    if not service.configured:
        logger.warning("RESEND_API_KEY not set; lifecycle emails will be logged only.")
    return service


# ---------------------------------------------------------------------------
# Fire-and-forget dispatch (scheduled as background tasks)
# ---------------------------------------------------------------------------


async def dispatch_case_submitted(service: NotificationService, ctx: CaseEmailContext) -> None:
    """Send admin + requester emails concurrently; log failures independently."""
    results = await asyncio.gather(
        service.send_new_case_notification(ctx),
        service.send_case_confirmation(ctx),
        return_exceptions=True,
    )
    for label, result in zip(("admin-new-case", "requester-confirmation"), results):
        if isinstance(result, Exception):
            logger.warning("Notification %s failed for case %s: %s", label, ctx.case_id, result)
        elif result is False:
            logger.info("Notification %s not delivered for case %s", label, ctx.case_id)


async def dispatch_status_changed(
    service: NotificationService, ctx: CaseEmailContext, previous_status: str
) -> None:
    """Send the status-change email; failures are logged and swallowed."""
    try:
        await service.send_status_update(ctx, previous_status)
    except Exception as exc:
        logger.warning(
            "Notification status-change failed for case %s (%s -> %s): %s",
            ctx.case_id,
            previous_status,
            ctx.status,
            exc,
        )
