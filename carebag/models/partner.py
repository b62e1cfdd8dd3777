"""Partner model — tier profile for partner organisations."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from carebag.models.base import Base, TimestampMixin


class Partner(TimestampMixin, Base):
    """A partner (clinic, insurer) that onboards users and doctors."""

    __tablename__ = "partners"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auth_users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    partner_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(500))
    address: Mapped[str | None] = mapped_column(String(500))

    is_active: Mapped[bool | None] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Partner code={self.partner_code} active={self.is_active}>"
