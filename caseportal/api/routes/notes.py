"""Case notes API: threaded remarks on a case."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from caseportal.api.deps import require_actor
from caseportal.api.schemas import CaseNoteCreate, CaseNoteOut
from caseportal.core.database import get_db
from caseportal.models.user import User
from caseportal.services import case_notes

router = APIRouter(prefix="/case-reviews", tags=["notes"])


@router.post("/{case_id}/notes", response_model=CaseNoteOut, status_code=201)
def add_case_note(
    case_id: str,
    body: CaseNoteCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
):
    """Add a note. ``isInternal`` is ignored for non-admins."""
    return case_notes.add_note(db, case_id, actor, body.content, body.is_internal)


@router.get("/{case_id}/notes", response_model=list[CaseNoteOut])
def list_case_notes(
    case_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
):
    return case_notes.list_notes(db, case_id, actor)
