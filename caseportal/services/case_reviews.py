"""Case review lifecycle: submission, listing, status changes."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import case as sql_case
from sqlalchemy.orm import Session

from caseportal.core.errors import NotFound
from caseportal.models.case_review import URGENCY_RANK, CaseReview, CaseStatus
from caseportal.models.user import User
from caseportal.services.access import load_authorized_case

logger = logging.getLogger(__name__)

SORT_NEWEST = "newest"
SORT_TRIAGE = "triage"

_urgency_rank = sql_case(
    {urgency.value: rank for urgency, rank in URGENCY_RANK.items()},
    value=CaseReview.urgency,
    else_=len(URGENCY_RANK),
)


def submit(db: Session, data, actor: Optional[User] = None) -> CaseReview:
    """Create a pending case from an already-validated submission.

    The owner is the authenticated actor, or nobody for anonymous
    submissions.
    """
    case = CaseReview(
        user_id=actor.id if actor is not None else None,
        name=data.name,
        email=data.email,
        phone=data.phone or None,
        service_type=data.service_type or None,
        case_summary=data.case_summary,
        urgency=data.urgency,
        status=CaseStatus.pending,
    )
    db.add(case)
    db.commit()
    db.refresh(case)

    logger.info(
        "Case submitted: %s urgency=%s owner=%s",
        case.id,
        case.urgency.value,
        case.user_id or "anonymous",
    )
    return case


def list_all(
    db: Session,
    *,
    status: Optional[CaseStatus] = None,
    sort: str = SORT_NEWEST,
) -> list[CaseReview]:
    """Every case, newest first; ``sort="triage"`` puts the most urgent first."""
    q = db.query(CaseReview)
    if status is not None:
        q = q.filter(CaseReview.status == status)
    if sort == SORT_TRIAGE:
        q = q.order_by(_urgency_rank.asc(), CaseReview.created_at.desc())
    else:
        q = q.order_by(CaseReview.created_at.desc())
    return q.all()


def list_mine(db: Session, actor: User) -> list[CaseReview]:
    return (
        db.query(CaseReview)
        .filter(CaseReview.user_id == actor.id)
        .order_by(CaseReview.created_at.desc())
        .all()
    )


def get(db: Session, case_id: str, actor: Optional[User]) -> CaseReview:
    return load_authorized_case(db, case_id, actor)


def set_status(db: Session, case_id: str, new_status: CaseStatus) -> tuple[CaseReview, CaseStatus]:
    """
    Change a case's status. Caller must already have checked admin rights.

    Any status may follow any other. Returns ``(case, previous_status)`` so
    the caller can decide whether to notify.
    """
    case = db.get(CaseReview, case_id)
    if case is None:
        raise NotFound(f"Case {case_id} does not exist", safe_message="Case review not found")

    previous = CaseStatus(case.status)
    case.status = new_status
    db.commit()
    db.refresh(case)

    logger.info("Case %s status %s -> %s", case.id, previous.value, new_status.value)
    return case, previous
