"""Shared API dependencies for authentication and collaborators."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from brewhub_dm.core.security import decode_subject
from brewhub_dm.db.session import get_db
from brewhub_dm.models import Profile
from brewhub_dm.models.user import ROLE_SUPERUSER
from brewhub_dm.services.errors import AccessDeniedError, UnauthenticatedError
from brewhub_dm.services.notifications import DatabaseNotificationSink, NotificationSink
from brewhub_dm.services.storage import ObjectStorage, get_object_storage

# auto_error=False so a missing header maps to the 401 error envelope
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> Profile:
    """Resolve the caller's profile from the bearer token.

    Raises:
        UnauthenticatedError: If the token is missing, invalid or unknown.
    """
    if credentials is None:
        raise UnauthenticatedError("Unauthorized")
    subject = decode_subject(credentials.credentials)
    if subject is None:
        raise UnauthenticatedError("Unauthorized", "Could not validate credentials")

    user = db.get(Profile, subject)
    if user is None:
        raise UnauthenticatedError("Unauthorized", "User not found")
    return user


CurrentUserDep = Annotated[Profile, Depends(get_current_user)]


def require_active_user(current_user: CurrentUserDep) -> Profile:
    """Reject callers whose account is blocked or disabled."""
    if not current_user.is_active:
        raise AccessDeniedError("Account blocked or disabled")
    return current_user


ActiveUserDep = Annotated[Profile, Depends(require_active_user)]


def require_superuser(current_user: CurrentUserDep) -> Profile:
    """Restrict an endpoint to the superuser role."""
    if current_user.role != ROLE_SUPERUSER:
        raise AccessDeniedError("Forbidden")
    return current_user


SuperuserDep = Annotated[Profile, Depends(require_superuser)]


def get_storage() -> ObjectStorage:
    """Return the object-storage client."""
    return get_object_storage()


def get_notifier(db: SessionDep) -> NotificationSink:
    """Return the notification sink bound to the request session."""
    return DatabaseNotificationSink(db)


StorageDep = Annotated[ObjectStorage, Depends(get_storage)]
NotifierDep = Annotated[NotificationSink, Depends(get_notifier)]
