"""Current-user endpoints for the client dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from caseportal.api.deps import require_actor
from caseportal.api.schemas import CaseReviewOut, UserOut
from caseportal.core.database import get_db
from caseportal.models.user import User
from caseportal.services import case_reviews

router = APIRouter(tags=["auth"])


@router.get("/auth/user", response_model=UserOut)
def current_user(actor: User = Depends(require_actor)):
    return actor


@router.get("/my-cases", response_model=list[CaseReviewOut])
def my_cases(
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
):
    """Cases owned by the caller, newest first."""
    return case_reviews.list_mine(db, actor)
