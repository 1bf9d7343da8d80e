"""Pydantic request / response schemas for the API layer.

JSON uses camelCase keys; snake_case is accepted on input as well.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from caseportal.models.case_review import CaseStatus, Urgency
from caseportal.models.user import Role


class _Schema(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ── Users ────────────────────────────────────────────────────────────


class UserOut(_Schema):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role


# ── Case reviews ─────────────────────────────────────────────────────


class CaseReviewCreate(_Schema):
    name: str = Field(..., min_length=2, max_length=256)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=64)
    service_type: Optional[str] = Field(None, max_length=128)
    case_summary: str = Field(..., min_length=50)
    urgency: Urgency


class CaseReviewOut(_Schema):
    id: str
    user_id: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None
    service_type: Optional[str] = None
    case_summary: str
    urgency: Urgency
    status: CaseStatus
    created_at: datetime
    updated_at: datetime


class CaseStatusUpdate(_Schema):
    status: CaseStatus

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if isinstance(value, str):
            try:
                return CaseStatus.parse(value)
            except ValueError:
                raise ValueError(
                    "status must be one of: "
                    + ", ".join(s.value for s in CaseStatus)
                ) from None
        return value


# ── Notes ────────────────────────────────────────────────────────────


class CaseNoteCreate(_Schema):
    content: str = Field(..., min_length=1, max_length=10_000)
    is_internal: bool = False


class CaseNoteOut(_Schema):
    id: str
    case_id: str
    author_id: Optional[str] = None
    content: str
    is_internal: bool
    created_at: datetime


# ── Evidence ─────────────────────────────────────────────────────────


class EvidenceOut(_Schema):
    id: str
    case_id: str
    uploaded_by: Optional[str] = None
    file_name: str
    file_type: str
    file_size: int
    created_at: datetime


# ── Admin ────────────────────────────────────────────────────────────


class EmailStatusOut(_Schema):
    configured: bool
    from_email: str
    admin_email: str


class EmailTestOut(_Schema):
    sent: bool
    message: str
