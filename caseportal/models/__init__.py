"""ORM models package: re-exports all models for Alembic auto-detection."""

from caseportal.models.user import Role, User  # noqa: F401
from caseportal.models.case_review import CaseReview, CaseStatus, Urgency  # noqa: F401
from caseportal.models.case_note import CaseNote  # noqa: F401
from caseportal.models.evidence_file import EvidenceFile  # noqa: F401
