"""
Identity Provider Adapter
=========================
Resolves an opaque bearer token to an external identity, then upserts the
matching ``User`` row.

Design principles:
  - Tokens are validated per-request; no session state.
  - Lookup is timing-safe: every configured token is compared.
  - The provider is authoritative for role; the row is refreshed on each
    successful authentication.
"""

from __future__ import annotations

import abc
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from caseportal.models.user import Role, User

logger = logging.getLogger(__name__)

# Reject megabyte-sized headers before comparing
MAX_TOKEN_LENGTH = 1024


@dataclass(frozen=True)
class ExternalIdentity:
    """Claims returned by the identity provider for one token."""

    subject: str
    email: Optional[str] = None
    role: Role = Role.client
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class IdentityProvider(abc.ABC):
    """Uniform interface for token → identity resolution."""

    @abc.abstractmethod
    def resolve(self, token: str) -> Optional[ExternalIdentity]:
        """Return the identity for *token*, or None if it is unknown/invalid."""


class StaticTokenProvider(IdentityProvider):
    """
    Token table provider, configured from ``AUTH_TOKENS``.

    Each entry maps a token to claims::

        {"<token>": {"sub": "auth0|123", "email": "a@b.c", "role": "admin"}}
    """

    def __init__(self, tokens: Mapping[str, Mapping[str, str]]):
        self._tokens = dict(tokens)
        logger.info("StaticTokenProvider initialized with %d token(s)", len(self._tokens))

    def resolve(self, token: str) -> Optional[ExternalIdentity]:
        if not token or len(token) > MAX_TOKEN_LENGTH:
            return None

        matched = None
        for candidate in self._tokens:
            if hmac.compare_digest(token.encode(), candidate.encode()) and matched is None:
                matched = candidate
        if matched is None:
            return None

        claims = self._tokens[matched]
        subject = claims.get("sub")
        if not subject:
            logger.error("Token entry without 'sub' claim; rejecting")
            return None
        try:
            role = Role(claims.get("role", Role.client.value))
        except ValueError:
            logger.error("Token entry for %s has unknown role %r", subject, claims.get("role"))
            return None

        return ExternalIdentity(
            subject=subject,
            email=claims.get("email"),
            role=role,
            first_name=claims.get("first_name"),
            last_name=claims.get("last_name"),
        )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    if authorization[:7].lower() == "bearer ":
        return authorization[7:].strip() or None
    return None


def _find_user(db: Session, subject: str) -> Optional[User]:
    return db.query(User).filter(User.external_id == subject).first()


def _apply_claims(user: User, identity: ExternalIdentity) -> bool:
    """Copy provider claims onto *user*; return True if anything changed."""
    claims = {
        "email": identity.email,
        "first_name": identity.first_name,
        "last_name": identity.last_name,
        "role": identity.role,
    }
    changed = False
    for attr, value in claims.items():
        if getattr(user, attr) != value:
            setattr(user, attr, value)
            changed = True
    return changed


def upsert_user(db: Session, identity: ExternalIdentity) -> User:
    """Create the user on first authentication, refresh claims afterwards.

    Two first requests for the same subject can race to insert; the loser
    hits the ``external_id`` unique constraint, rolls back and continues
    with the winner's row. Nothing is written when the claims are unchanged.
    """
    user = _find_user(db, identity.subject)
    if user is None:
        user = User(
            external_id=identity.subject,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            role=identity.role,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Concurrent first login for subject %s; reusing existing row", identity.subject)
            user = _find_user(db, identity.subject)
            if user is None:
                raise
        else:
            db.refresh(user)
            logger.info("User created for subject %s (role=%s)", identity.subject, identity.role.value)
            return user

    if _apply_claims(user, identity):
        user.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(user)
    return user
