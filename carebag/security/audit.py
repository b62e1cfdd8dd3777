"""Audit log writer — persists privileged actions to admin_audit_logs.

`append` commits before returning, so a caller that awaited it can report
success knowing the entry is durable. `append_best_effort` is for paths
where the privileged action has already committed and cannot be undone:
failures there are logged and never propagate.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.errors import StoreUnavailable
from carebag.models.audit import AdminAuditLog
from carebag.schemas.audit import AuditLogEntry

logger = logging.getLogger(__name__)


class AuditLogger:
    """Append-only access to the audit log."""

    async def append(self, db: AsyncSession, entry: AuditLogEntry) -> AdminAuditLog:
        """Insert and commit one entry. Raises StoreUnavailable on failure."""
        row = AdminAuditLog(
            actor_id=entry.actor_id,
            action=entry.action.value,
            target_type=entry.target_type,
            target_id=entry.target_id,
            details=entry.details,
        )
        try:
            db.add(row)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StoreUnavailable("audit log write failed") from exc

        logger.info(
            "Audit: action=%s actor=%s target=%s:%s",
            entry.action.value,
            entry.actor_id,
            entry.target_type,
            entry.target_id,
        )
        return row

    async def append_best_effort(self, db: AsyncSession, entry: AuditLogEntry) -> bool:
        """Like `append`, but logs failures instead of raising. Returns success."""
        try:
            await self.append(db, entry)
        except StoreUnavailable:
            logger.exception(
                "Failed to persist audit entry: action=%s actor=%s target=%s",
                entry.action.value,
                entry.actor_id,
                entry.target_id,
            )
            return False
        return True


# Module-level singleton
audit_logger = AuditLogger()
