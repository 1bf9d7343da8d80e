"""CaseReview model: a submitted matter awaiting triage."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from caseportal.core.database import Base


class CaseStatus(str, enum.Enum):
    pending = "pending"
    in_review = "in_review"
    in_progress = "in_progress"
    completed = "completed"
    closed = "closed"

    @classmethod
    def parse(cls, value: str) -> "CaseStatus":
        """Accept canonical values plus the legacy hyphenated spellings."""
        normalized = value.strip().lower()
        normalized = _STATUS_ALIASES.get(normalized, normalized)
        return cls(normalized)


# Legacy spellings found in older persisted data and clients
_STATUS_ALIASES = {
    "under-review": "in_review",
    "under_review": "in_review",
    "in-review": "in_review",
    "in-progress": "in_progress",
}


class Urgency(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


# Lower rank sorts first in triage views
URGENCY_RANK = {
    Urgency.critical: 0,
    Urgency.high: 1,
    Urgency.medium: 2,
    Urgency.low: 3,
}


class CaseReview(Base):
    __tablename__ = "case_reviews"
    __table_args__ = (
        Index("ix_case_reviews_user_id", "user_id"),
        Index("ix_case_reviews_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Owner; null for anonymous submissions. Never reassigned.
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    service_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    case_summary: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[Urgency] = mapped_column(
        Enum(Urgency, name="case_urgency", create_constraint=True), nullable=False
    )
    status: Mapped[CaseStatus] = mapped_column(
        Enum(CaseStatus, name="case_status", create_constraint=True),
        default=CaseStatus.pending,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    owner = relationship("User", back_populates="case_reviews")
    notes = relationship("CaseNote", back_populates="case")
    evidence_files = relationship("EvidenceFile", back_populates="case")
