"""FastAPI dependencies: actor resolution and injected services."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from caseportal.auth.identity import (
    IdentityProvider,
    StaticTokenProvider,
    extract_bearer_token,
    upsert_user,
)
from caseportal.core.config import settings
from caseportal.core.database import get_db
from caseportal.core.errors import AdminRequired, Unauthenticated
from caseportal.models.user import User
from caseportal.services.notifications import NotificationService, build_notification_service
from caseportal.services.storage_backend import BlobStore, LocalFSStore


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    return StaticTokenProvider(settings.auth_tokens)


@lru_cache(maxsize=1)
def get_notifier() -> NotificationService:
    return build_notification_service(settings)


@lru_cache(maxsize=1)
def get_evidence_store() -> BlobStore:
    return LocalFSStore(root=settings.upload_dir)


def get_current_actor(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[User]:
    """Resolve the caller, or None when no credentials were sent.

    Credentials that are present but invalid are rejected outright, even on
    endpoints that tolerate anonymous callers.
    """
    if authorization is None:
        return None
    token = extract_bearer_token(authorization)
    identity = provider.resolve(token) if token else None
    if identity is None:
        raise Unauthenticated("Invalid or expired token")
    return upsert_user(db, identity)


def require_actor(actor: Optional[User] = Depends(get_current_actor)) -> User:
    if actor is None:
        raise Unauthenticated()
    return actor


def require_admin(actor: User = Depends(require_actor)) -> User:
    if not actor.is_admin:
        raise AdminRequired()
    return actor
