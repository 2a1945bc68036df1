"""Typed outcomes raised by the messaging services.

Every service failure the API can explain to a caller derives from
``DirectMessageError`` and carries the HTTP status code it maps to. Anything
else (for example ``SQLAlchemyError``) is an infrastructure failure and is left
to surface as a 500.
"""

from __future__ import annotations


class DirectMessageError(Exception):
    """Base class for domain failures of the messaging subsystem."""

    status_code = 400

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationFailedError(DirectMessageError):
    """Malformed or unacceptable payload."""

    status_code = 400


class UnauthenticatedError(DirectMessageError):
    """No resolvable caller identity."""

    status_code = 401


class AccessDeniedError(DirectMessageError):
    """Caller is known but not allowed (blocked, privacy, role, ownership)."""

    status_code = 403


class NotFoundError(DirectMessageError):
    """Missing resource, or a conversation the caller does not belong to."""

    status_code = 404


class ConflictError(DirectMessageError):
    """Request conflicts with current state, e.g. deleting a reported message."""

    status_code = 409


class RateLimitedError(DirectMessageError):
    """Caller exceeded a request budget and may retry later."""

    status_code = 429

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        *,
        retry_after_seconds: int = 1,
    ) -> None:
        super().__init__(message, detail)
        self.retry_after_seconds = max(1, int(retry_after_seconds))
