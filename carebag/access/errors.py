"""Error taxonomy for the privileged operations.

`AccessError` subclasses carry the HTTP status and the only message a
caller is ever shown. Collaborator faults are `StoreUnavailable`; they are
logged with full detail and translated into the nearest `AccessError`
(or a guard denial) before anything leaves the process.
"""

from __future__ import annotations


class StoreUnavailable(Exception):
    """A Role/Profile/Global-ID store, Redis or the auth backend failed."""


class AuthError(Exception):
    """Credential sign-in was rejected."""


class AccessError(Exception):
    """Base class for errors returned to callers as `{"error": ...}`."""

    status_code: int = 500
    public_message: str = "An unexpected error occurred"

    def __init__(self, public_message: str | None = None) -> None:
        if public_message is not None:
            self.public_message = public_message
        super().__init__(self.public_message)


class InvalidRequest(AccessError):
    status_code = 400
    public_message = "Invalid request"


class InvalidCredentials(AccessError):
    """Every failure of the global-ID sign-in collapses to this one error."""

    status_code = 401
    public_message = "Invalid credentials"


class SessionExpired(AccessError):
    status_code = 401
    public_message = "Your session has expired. Please log in again."


class SelfDeleteForbidden(AccessError):
    status_code = 403
    public_message = "Admin and partner accounts cannot be self-deleted. Please contact support."


class AdminRequired(AccessError):
    status_code = 403
    public_message = "Only super admins can delete users"


class DeletionFailed(AccessError):
    status_code = 500
    public_message = "Failed to delete your account. Please try again or contact support."


class UserNotFound(AccessError):
    status_code = 404
    public_message = "User not found"


class PasswordUpdateFailed(AccessError):
    status_code = 500
    public_message = "Failed to set new password. Please try again."
