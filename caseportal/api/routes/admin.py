"""Back-office endpoints: notification settings status and test send."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from caseportal.api.deps import get_notifier, require_admin
from caseportal.api.schemas import EmailStatusOut, EmailTestOut
from caseportal.core.errors import NotificationFailure
from caseportal.models.user import User
from caseportal.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/email-status", response_model=EmailStatusOut)
def email_status(
    _admin: User = Depends(require_admin),
    notifier: NotificationService = Depends(get_notifier),
):
    return EmailStatusOut(
        configured=notifier.configured,
        from_email=notifier.from_email,
        admin_email=notifier.admin_email,
    )


@router.post("/email-test", response_model=EmailTestOut)
async def email_test(
    _admin: User = Depends(require_admin),
    notifier: NotificationService = Depends(get_notifier),
):
    """Send a test message to the admin address and report the outcome."""
    if not notifier.configured:
        return EmailTestOut(sent=False, message="Email is not configured (RESEND_API_KEY unset).")
    try:
        sent = await notifier.send_test_email()
    except NotificationFailure as exc:
        logger.warning("Test email failed: %s", exc)
        return EmailTestOut(sent=False, message="Email provider rejected the test message.")
    return EmailTestOut(sent=sent, message=f"Test email sent to {notifier.admin_email}.")
