"""Account deletion — self-service and super-admin initiated.

Self-deletion is refused outright for super admins and partners; they are
offboarded by an administrator. For everyone else the primary credential
record is deleted and owned rows follow it, either through ON DELETE
CASCADE or, when `settings.db.cascade_deletes` is off, through explicit
deletes issued first in the same transaction.

Exactly one audit entry is written per completed deletion, after the
delete has committed and before the response is returned. A failed audit
write is logged but does not fail the request: the delete cannot be
rolled back at that point.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.errors import (
    AdminRequired,
    DeletionFailed,
    InvalidRequest,
    SelfDeleteForbidden,
    SessionExpired,
    StoreUnavailable,
)
from carebag.access.stores import RoleStore
from carebag.auth.session import SessionProvider
from carebag.config import settings
from carebag.models.doctor import Doctor
from carebag.models.document import Document
from carebag.models.enums import SELF_DELETE_BLOCKED_ROLES, AuditAction, DeleteType, Role
from carebag.models.partner import Partner
from carebag.models.profile import Profile
from carebag.models.role import UserRole
from carebag.schemas.access import Principal
from carebag.schemas.audit import AuditLogEntry
from carebag.security.audit import AuditLogger, audit_logger

logger = logging.getLogger(__name__)

# Child-first order so no statement trips a foreign key.
OWNED_TABLES = (Document, Profile, Doctor, Partner, UserRole)

# Rows removed by a data-only deletion; the login and role rows stay.
USER_DATA_TABLES = (Document, Profile)


@dataclass
class DeletionResult:
    """What an admin deletion removed."""

    user_id: uuid.UUID
    delete_type: DeleteType
    target_type: str = "user"


class AccountDeletionService:
    """Authorization-gated, audited account removal."""

    def __init__(
        self,
        db: AsyncSession,
        session: SessionProvider,
        roles: RoleStore,
        audit: AuditLogger = audit_logger,
        cascade_deletes: bool | None = None,
    ) -> None:
        self._db = db
        self._session = session
        self._roles = roles
        self._audit = audit
        self._cascade = settings.db.cascade_deletes if cascade_deletes is None else cascade_deletes

    # ── Self-service ─────────────────────────────────────────────────

    async def delete_own_account(self) -> None:
        """Delete the calling principal's account.

        Raises SessionExpired, SelfDeleteForbidden or DeletionFailed.
        """
        principal = await self._require_principal()

        try:
            roles = await self._roles.list_roles(principal.id)
        except StoreUnavailable:
            logger.exception("Role lookup failed before self-delete of %s", principal.id)
            raise DeletionFailed() from None

        if roles & SELF_DELETE_BLOCKED_ROLES:
            logger.warning(
                "Refused self-delete for privileged principal=%s roles=%s",
                principal.id,
                sorted(r.value for r in roles),
            )
            raise SelfDeleteForbidden()

        logger.info("Principal %s self-deleting account", principal.id)
        try:
            await self._purge_owned_rows(principal.id)
            await self._session.delete_user(principal.id)
        except StoreUnavailable:
            logger.exception("Self-delete failed for principal=%s", principal.id)
            raise DeletionFailed() from None

        await self._audit.append_best_effort(
            self._db,
            AuditLogEntry(
                actor_id=principal.id,
                action=AuditAction.SELF_DELETE_ACCOUNT,
                target_type="user",
                target_id=principal.id,
                details={"email": principal.email, "self_initiated": True},
            ),
        )
        logger.info("Account deleted: %s", principal.id)

    # ── Super admin ──────────────────────────────────────────────────

    async def delete_user_as_admin(
        self,
        user_id: str | None,
        delete_type: str | None = None,
    ) -> DeletionResult:
        """Delete another principal's account (`full`) or only their data (`data`)."""
        requester = await self._require_principal()

        try:
            requester_roles = await self._roles.list_roles(requester.id)
        except StoreUnavailable:
            logger.exception("Role lookup failed for admin %s", requester.id)
            raise AdminRequired() from None
        if Role.SUPER_ADMIN not in requester_roles:
            raise AdminRequired()

        if not user_id:
            raise InvalidRequest("User ID is required")
        try:
            target_id = uuid.UUID(str(user_id))
        except ValueError:
            raise InvalidRequest("User ID is invalid") from None
        if target_id == requester.id:
            raise InvalidRequest("You cannot delete your own account")
        try:
            kind = DeleteType(delete_type or DeleteType.DATA.value)
        except ValueError:
            raise InvalidRequest("Unknown delete type") from None

        failed = DeletionFailed("Failed to delete the user. Please try again.")
        try:
            details = await self._describe_target(target_id)
        except StoreUnavailable:
            logger.exception("Could not load target %s before deletion", target_id)
            raise failed from None
        details["delete_type"] = kind.value

        logger.info("Admin %s deleting user %s (type=%s)", requester.id, target_id, kind.value)
        try:
            if kind is DeleteType.FULL:
                await self._purge_owned_rows(target_id)
                await self._session.delete_user(target_id)
            else:
                await self._delete_rows(target_id, USER_DATA_TABLES)
                await self._commit()
        except StoreUnavailable:
            logger.exception("Admin deletion of %s failed", target_id)
            raise failed from None

        result = DeletionResult(
            user_id=target_id,
            delete_type=kind,
            target_type="partner" if details["partner_name"] is not None else "user",
        )
        await self._audit.append_best_effort(
            self._db,
            AuditLogEntry(
                actor_id=requester.id,
                action=AuditAction.DELETE_USER if kind is DeleteType.FULL else AuditAction.DELETE_USER_DATA,
                target_type=result.target_type,
                target_id=target_id,
                details=details,
            ),
        )
        return result

    # ── Internals ────────────────────────────────────────────────────

    async def _require_principal(self) -> Principal:
        try:
            principal = await self._session.current_principal()
        except StoreUnavailable:
            logger.exception("Session lookup failed")
            raise SessionExpired() from None
        if principal is None:
            raise SessionExpired()
        return principal

    async def _describe_target(self, target_id: uuid.UUID) -> dict[str, Any]:
        """Name, email and partner name of the target, captured before deletion."""
        try:
            profile_row = (
                await self._db.execute(
                    select(Profile.name, Profile.email).where(Profile.user_id == target_id).limit(1)
                )
            ).first()
            partner_name = (
                await self._db.execute(select(Partner.name).where(Partner.user_id == target_id))
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("target lookup failed") from exc

        return {
            "user_name": profile_row.name if profile_row else "Unknown",
            "user_email": (profile_row.email if profile_row else None) or "Unknown",
            "partner_name": partner_name,
        }

    async def _purge_owned_rows(self, principal_id: uuid.UUID) -> None:
        """Explicit owned-data cleanup for stores without cascading deletes."""
        if self._cascade:
            return
        await self._delete_rows(principal_id, OWNED_TABLES)

    async def _delete_rows(self, principal_id: uuid.UUID, tables: tuple[type, ...]) -> None:
        try:
            for model in tables:
                result = await self._db.execute(delete(model).where(model.user_id == principal_id))
                logger.debug(
                    "Deleted %d %s rows for %s",
                    result.rowcount,  # type: ignore[attr-defined]
                    model.__tablename__,
                    principal_id,
                )
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailable("owned data delete failed") from exc

    async def _commit(self) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailable("commit failed") from exc
