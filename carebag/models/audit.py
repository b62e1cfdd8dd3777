"""AdminAuditLog model — append-only record of privileged actions.

Rows are inserted once and never updated or deleted. `actor_id` and
`target_id` carry no foreign key so entries survive the deletion of the
principal they describe.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from carebag.models.base import Base, CreatedAtMixin


class AdminAuditLog(CreatedAtMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "admin_audit_logs"

    # Who (nullable: a failed sign-in may not resolve to anyone)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # What
    target_type: Mapped[str | None] = mapped_column(String(50), comment="user, partner, session")
    target_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    details: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    def __repr__(self) -> str:
        return f"<AdminAuditLog action={self.action} actor={self.actor_id}>"
