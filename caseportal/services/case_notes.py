"""Case notes: owner/admin remarks with admin-only internal notes."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from caseportal.models.case_note import CaseNote
from caseportal.models.user import User
from caseportal.services.access import load_authorized_case

logger = logging.getLogger(__name__)


def add_note(
    db: Session,
    case_id: str,
    actor: Optional[User],
    content: str,
    is_internal: bool = False,
) -> CaseNote:
    """Attach a note to a case. Clients can never create internal notes."""
    case = load_authorized_case(db, case_id, actor)

    note = CaseNote(
        case_id=case.id,
        author_id=actor.id,
        content=content,
        is_internal=bool(is_internal) and actor.is_admin,
    )
    db.add(note)
    db.commit()
    db.refresh(note)

    logger.info(
        "Note %s added to case %s by %s (internal=%s)",
        note.id,
        case.id,
        actor.id,
        note.is_internal,
    )
    return note


def list_notes(db: Session, case_id: str, actor: Optional[User]) -> list[CaseNote]:
    """Notes for a case, newest first.

    Internal notes are stripped here for non-admins regardless of what the
    query returned.
    """
    case = load_authorized_case(db, case_id, actor)

    notes = (
        db.query(CaseNote)
        .filter(CaseNote.case_id == case.id)
        .order_by(CaseNote.created_at.desc())
        .all()
    )
    if actor.is_admin:
        return notes
    return [n for n in notes if not n.is_internal]
