"""Doctor model — tier profile for principals holding the doctor role."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from carebag.models.base import Base, TimestampMixin


class Doctor(TimestampMixin, Base):
    """A doctor attached to the platform, optionally through a partner."""

    __tablename__ = "doctors"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auth_users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    partner_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("partners.id", ondelete="SET NULL")
    )
    global_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    # Profile
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    specialty: Mapped[str | None] = mapped_column(String(200))
    hospital: Mapped[str | None] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30))

    # Null is read as inactive by the access guard
    is_active: Mapped[bool | None] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Doctor id={self.id} active={self.is_active}>"
