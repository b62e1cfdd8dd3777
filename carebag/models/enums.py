"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin so values serialize directly to JSON and to the
text columns they are stored in.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Privilege tiers a principal can be assigned in `user_roles`.

    Closed set: every member must have an entry in
    `carebag.access.guard.TIER_POLICIES` (checked at import time).
    """

    USER = "user"
    DOCTOR = "doctor"
    PARTNER = "partner"
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"


# Roles that may never delete themselves through the self-service endpoint.
SELF_DELETE_BLOCKED_ROLES = frozenset({Role.SUPER_ADMIN, Role.PARTNER})


class AuditAction(str, Enum):
    """Action tags written to admin_audit_logs."""

    SELF_DELETE_ACCOUNT = "self_delete_account"
    DELETE_USER = "delete_user"
    DELETE_USER_DATA = "delete_user_data"
    GLOBAL_ID_LOGIN = "admin_global_id_login"
    GLOBAL_ID_LOGIN_FAILED = "admin_global_id_login_failed"
    PASSWORD_CHANGED_BY_ADMIN = "password_changed_by_admin"


class DeleteType(str, Enum):
    """Scope of an admin-initiated deletion."""

    FULL = "full"  # remove the login; owned rows cascade
    DATA = "data"  # remove profiles and documents, keep the login
