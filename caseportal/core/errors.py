"""Exception hierarchy for the case portal.

Messages passed as ``safe_message`` are returned to clients; the full
message is for server logs only.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base exception for the case portal.

    ``status_code`` is the HTTP status the API layer maps the error to.
    """

    status_code = 500

    def __init__(self, message: str, *, safe_message: str | None = None) -> None:
        super().__init__(message)
        self._safe_message = safe_message or message

    @property
    def safe_message(self) -> str:
        """Return client-safe error message."""
        return self._safe_message


class ValidationError(PortalError):
    """Malformed or missing input fields.

    ``errors`` is a list of ``{"field": ..., "message": ...}`` dicts.
    """

    status_code = 400

    def __init__(self, errors: list[dict[str, str]], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])


class NotFound(PortalError):
    """Resource absent, or present but not visible to the caller.

    Unauthorized access to a case-scoped resource raises this too, so a
    non-owner cannot tell a foreign case from a missing one.
    """

    status_code = 404


class Unauthenticated(PortalError):
    """No resolvable actor where one is required."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AdminRequired(PortalError):
    """Authenticated, but the back-office endpoint is admin-only."""

    status_code = 403

    def __init__(self, message: str = "Admin access required") -> None:
        super().__init__(message)


class StorageFailure(PortalError):
    """Blob read/write failure, distinct from metadata errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        # Storage paths never leave the server
        super().__init__(message, safe_message="File storage error")


class NotificationFailure(PortalError):
    """Outbound email failed. Always caught by the dispatcher."""
