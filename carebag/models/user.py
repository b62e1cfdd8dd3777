"""AuthUser model — the primary credential record for a principal.

Every table holding data owned by a principal references `auth_users.id`
with ON DELETE CASCADE, so removing this row removes the account.
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from carebag.models.base import Base, TimestampMixin


class AuthUser(TimestampMixin, Base):
    """A login: email handle plus bcrypt password hash."""

    __tablename__ = "auth_users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False, comment="bcrypt")

    def __repr__(self) -> str:
        return f"<AuthUser id={self.id}>"
