"""Profile model — health profiles owned by a principal.

The `carebag_id` column doubles as the global ID used for admin sign-in;
it is always stored upper case.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from carebag.models.base import Base, TimestampMixin


class Profile(TimestampMixin, Base):
    """A person profile (the account holder or a dependant)."""

    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auth_users.id", ondelete="CASCADE"),
        index=True,
    )
    carebag_id: Mapped[str | None] = mapped_column(String(20), unique=True, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(30))
    relation: Mapped[str | None] = mapped_column(String(50))

    def __repr__(self) -> str:
        return f"<Profile id={self.id} carebag_id={self.carebag_id}>"
