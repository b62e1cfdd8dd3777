"""Global-ID resolver — super-admin sign-in with a memorable identifier.

The caller supplies a global ID (``ABC-0XXXXX``) and a password. The ID is
resolved server-side to the principal's email, the principal must hold
``super_admin``, and the email/password pair is then verified. Every
failure after format validation returns the same `InvalidCredentials`
error so a caller cannot tell an unknown ID from a wrong password or a
missing role.

Sign-in attempts that reach the lookup are written to the audit log
(success and failure alike). Those writes are best-effort and never
change the response.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.errors import AuthError, InvalidCredentials, InvalidRequest, StoreUnavailable
from carebag.access.stores import GlobalIdStore, RoleStore
from carebag.auth.passwords import burn_password_check
from carebag.auth.session import SessionProvider
from carebag.models.enums import AuditAction, Role
from carebag.schemas.audit import AuditLogEntry
from carebag.schemas.auth import AuthSession
from carebag.security.audit import AuditLogger, audit_logger

logger = logging.getLogger(__name__)

# Three letters, hyphen, "0", five alphanumerics. ASCII only so that
# case-folding cannot admit look-alike characters.
GLOBAL_ID_PATTERN = re.compile(r"[A-Z]{3}-0[A-Z0-9]{5}", re.IGNORECASE | re.ASCII)


def is_valid_global_id(value: str) -> bool:
    return GLOBAL_ID_PATTERN.fullmatch(value) is not None


class _LookupFailed(Exception):
    """Internal: why a sign-in failed. Never shown to the caller."""

    def __init__(self, stage: str, principal_id: uuid.UUID | None = None) -> None:
        super().__init__(stage)
        self.stage = stage
        self.principal_id = principal_id


class GlobalIdResolver:
    """Resolves a global ID and signs the super admin in."""

    def __init__(
        self,
        db: AsyncSession,
        session: SessionProvider,
        global_ids: GlobalIdStore,
        roles: RoleStore,
        audit: AuditLogger = audit_logger,
    ) -> None:
        self._db = db
        self._session = session
        self._global_ids = global_ids
        self._roles = roles
        self._audit = audit

    async def resolve_and_sign_in(self, global_id: str | None, password: str | None) -> AuthSession:
        """Validate, resolve, authorize, and authenticate.

        Raises InvalidRequest (400) for missing or malformed input, before
        any store is touched. Raises InvalidCredentials (401) otherwise.
        """
        if not global_id or not password:
            raise InvalidRequest("Global ID and password are required")
        if not is_valid_global_id(global_id):
            raise InvalidRequest("Invalid Admin Global ID format")

        normalized = global_id.upper()
        try:
            auth_session = await self._sign_in(normalized, password)
        except _LookupFailed as exc:
            logger.info("Global ID sign-in failed at stage=%s", exc.stage)
            await self._record_failure(normalized, exc)
            raise InvalidCredentials() from None

        await self._audit.append_best_effort(
            self._db,
            AuditLogEntry(
                actor_id=auth_session.user.id,
                action=AuditAction.GLOBAL_ID_LOGIN,
                target_type="session",
                target_id=auth_session.user.id,
                details={"global_id": normalized},
            ),
        )
        return auth_session

    async def _sign_in(self, global_id: str, password: str) -> AuthSession:
        principal_id = None
        try:
            record = await self._global_ids.lookup(global_id)
            if record is None:
                raise _LookupFailed("unknown_global_id")
            principal_id = record.user_id

            roles = await self._roles.list_roles(record.user_id)
            if Role.SUPER_ADMIN not in roles:
                raise _LookupFailed("not_super_admin", principal_id)

            return await self._session.sign_in_with_credential(record.email, password)

        except _LookupFailed:
            # Match the cost of a real password check so timing does not leak the stage
            await asyncio.to_thread(burn_password_check, password)
            raise
        except AuthError as exc:
            raise _LookupFailed("bad_password", principal_id) from exc
        except StoreUnavailable as exc:
            logger.exception("Store fault during global ID sign-in")
            raise _LookupFailed("store_fault", principal_id) from exc
        except Exception as exc:
            logger.exception("Unexpected error during global ID sign-in")
            raise _LookupFailed("unexpected", principal_id) from exc

    async def _record_failure(self, global_id: str, exc: _LookupFailed) -> None:
        # The session may have been left mid-transaction by a failed store call.
        try:
            await self._db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after failed global ID sign-in failed")
        await self._audit.append_best_effort(
            self._db,
            AuditLogEntry(
                actor_id=exc.principal_id,
                action=AuditAction.GLOBAL_ID_LOGIN_FAILED,
                target_type="session",
                target_id=exc.principal_id,
                details={"global_id": global_id, "stage": exc.stage},
            ),
        )
