"""Admin password set — a super admin replaces another principal's password.

The target is found by email (case-insensitive). The new hash is committed,
every live session of the target is revoked, and one
`password_changed_by_admin` audit entry is written after the commit.
Reset-by-email is not offered here.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.errors import (
    AdminRequired,
    InvalidRequest,
    PasswordUpdateFailed,
    SessionExpired,
    StoreUnavailable,
    UserNotFound,
)
from carebag.access.stores import RoleStore
from carebag.auth.session import SessionProvider
from carebag.models.enums import AuditAction, Role
from carebag.models.user import AuthUser
from carebag.schemas.access import Principal
from carebag.schemas.audit import AuditLogEntry
from carebag.security.audit import AuditLogger, audit_logger

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit

TARGET_TYPES = frozenset({"user", "partner"})


class AdminPasswordService:
    """Super-admin only, audited password replacement."""

    def __init__(
        self,
        db: AsyncSession,
        session: SessionProvider,
        roles: RoleStore,
        audit: AuditLogger = audit_logger,
    ) -> None:
        self._db = db
        self._session = session
        self._roles = roles
        self._audit = audit

    async def set_password(
        self,
        user_email: str | None,
        new_password: str | None,
        user_name: str | None = None,
        user_type: str | None = None,
    ) -> uuid.UUID:
        """Set `new_password` on the account registered to `user_email`.

        Returns the target's id. Raises SessionExpired, AdminRequired,
        InvalidRequest, UserNotFound or PasswordUpdateFailed.
        """
        admin = await self._require_super_admin()

        if not user_email or not user_email.strip():
            raise InvalidRequest("User email is required")
        if not new_password:
            raise InvalidRequest("New password is required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise InvalidRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if len(new_password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidRequest(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
        target_type = user_type or "user"
        if target_type not in TARGET_TYPES:
            raise InvalidRequest("Unknown user type")

        try:
            target_id = await self._find_user(user_email)
        except StoreUnavailable:
            logger.exception("Target lookup failed before password set")
            raise PasswordUpdateFailed() from None
        if target_id is None:
            raise UserNotFound()

        logger.info("Admin %s setting new password for %s %s", admin.id, target_type, target_id)
        try:
            await self._session.set_password(target_id, new_password)
        except StoreUnavailable:
            logger.exception("Password update failed for %s", target_id)
            raise PasswordUpdateFailed() from None

        await self._audit.append_best_effort(
            self._db,
            AuditLogEntry(
                actor_id=admin.id,
                action=AuditAction.PASSWORD_CHANGED_BY_ADMIN,
                target_type=target_type,
                target_id=target_id,
                details={"target_email": user_email, "target_name": user_name},
            ),
        )
        return target_id

    async def _require_super_admin(self) -> Principal:
        try:
            principal = await self._session.current_principal()
        except StoreUnavailable:
            logger.exception("Session lookup failed")
            raise SessionExpired() from None
        if principal is None:
            raise SessionExpired()

        try:
            roles = await self._roles.list_roles(principal.id)
        except StoreUnavailable:
            logger.exception("Role lookup failed for admin %s", principal.id)
            raise AdminRequired("Super admin access required") from None
        if Role.SUPER_ADMIN not in roles:
            raise AdminRequired("Super admin access required")
        return principal

    async def _find_user(self, email: str) -> uuid.UUID | None:
        try:
            result = await self._db.execute(
                select(AuthUser.id).where(func.lower(AuthUser.email) == email.strip().lower())
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("auth user lookup failed") from exc
