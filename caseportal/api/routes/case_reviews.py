"""Case reviews API: public submission, admin triage, owner access."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from caseportal.api.deps import get_current_actor, get_notifier, require_actor, require_admin
from caseportal.api.schemas import CaseReviewCreate, CaseReviewOut, CaseStatusUpdate
from caseportal.core.database import get_db
from caseportal.core.errors import NotFound, ValidationError
from caseportal.models.case_review import CaseStatus
from caseportal.models.user import User
from caseportal.services import case_reviews
from caseportal.services.notifications import (
    CaseEmailContext,
    NotificationService,
    dispatch_case_submitted,
    dispatch_status_changed,
)

router = APIRouter(prefix="/case-reviews", tags=["case-reviews"])


@router.post("", response_model=CaseReviewOut, status_code=201)
def submit_case_review(
    body: CaseReviewCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: Optional[User] = Depends(get_current_actor),
    notifier: NotificationService = Depends(get_notifier),
):
    """Submit a new case. Anonymous callers are allowed."""
    case = case_reviews.submit(db, body, actor)
    background_tasks.add_task(
        dispatch_case_submitted, notifier, CaseEmailContext.from_case(case)
    )
    return case


@router.get("", response_model=list[CaseReviewOut])
def list_case_reviews(
    status: Optional[str] = Query(None),
    sort: Literal["newest", "triage"] = Query("newest"),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """All cases (admin). ``sort=triage`` orders by urgency, then newest."""
    status_filter = None
    if status:
        try:
            status_filter = CaseStatus.parse(status)
        except ValueError:
            raise ValidationError.for_field("status", f"Unknown status: {status}") from None
    return case_reviews.list_all(db, status=status_filter, sort=sort)


@router.get("/{case_id}", response_model=CaseReviewOut)
def get_case_review(
    case_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
):
    return case_reviews.get(db, case_id, actor)


@router.patch("/{case_id}/status", response_model=CaseReviewOut)
def update_case_status(
    case_id: str,
    body: CaseStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
    notifier: NotificationService = Depends(get_notifier),
):
    """Change a case's status (admin). Emails the requester if it changed."""
    # Case-scoped, so non-admins get 404 even on their own case
    if not actor.is_admin:
        raise NotFound(
            f"Status change on case {case_id} refused for non-admin {actor.id}",
            safe_message="Case review not found",
        )

    case, previous = case_reviews.set_status(db, case_id, body.status)
    if previous != case.status:
        background_tasks.add_task(
            dispatch_status_changed,
            notifier,
            CaseEmailContext.from_case(case),
            previous.value,
        )
    return case
