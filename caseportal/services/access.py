"""
Case Access Guard
=================
The single authorization predicate for every case-scoped operation
(read case, notes, evidence, status change).

Design principles:
  - Capability check, not a permission matrix: admins see every case,
    clients see only the cases they own.
  - Anonymous actors are never admitted.
  - Missing and foreign cases are indistinguishable: both raise NotFound.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from caseportal.core.errors import NotFound
from caseportal.models.case_review import CaseReview
from caseportal.models.user import User

logger = logging.getLogger(__name__)


def authorize(actor: Optional[User], case: CaseReview) -> bool:
    """Admit iff *actor* is an admin or owns *case*."""
    if actor is None:
        return False
    if actor.is_admin:
        return True
    return case.user_id is not None and case.user_id == actor.id


def load_authorized_case(db: Session, case_id: str, actor: Optional[User]) -> CaseReview:
    """
    Load a case and apply :func:`authorize`.

    Raises NotFound both when the case does not exist and when the actor
    may not see it.
    """
    case = db.get(CaseReview, case_id)
    if case is None:
        raise NotFound(f"Case {case_id} does not exist", safe_message="Case review not found")
    if not authorize(actor, case):
        logger.info(
            "Case access denied: case=%s actor=%s",
            case_id,
            getattr(actor, "id", None),
        )
        raise NotFound(
            f"Case {case_id} not visible to actor {getattr(actor, 'id', None)}",
            safe_message="Case review not found",
        )
    return case
