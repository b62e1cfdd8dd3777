"""Role, profile and global-ID stores over PostgreSQL.

Each store wraps one narrow query and normalizes driver faults into
`StoreUnavailable`, so callers only ever handle one fault type.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.errors import StoreUnavailable
from carebag.models.doctor import Doctor
from carebag.models.enums import Role
from carebag.models.partner import Partner
from carebag.models.profile import Profile
from carebag.models.role import UserRole
from carebag.schemas.access import DoctorProfile, GlobalIdRecord, PartnerProfile, ProfileRecord

logger = logging.getLogger(__name__)

# Tier → (ORM model, read schema) for tiers that carry a profile record.
PROFILE_SOURCES: dict[Role, tuple[type[Doctor] | type[Partner], type[DoctorProfile] | type[PartnerProfile]]] = {
    Role.DOCTOR: (Doctor, DoctorProfile),
    Role.PARTNER: (Partner, PartnerProfile),
}


class RoleStore:
    """Read access to `user_roles`."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def list_roles(self, principal_id: uuid.UUID) -> set[Role]:
        """All known roles of a principal. Unrecognized role strings are skipped."""
        try:
            result = await self._db.execute(
                select(UserRole.role).where(UserRole.user_id == principal_id)
            )
            raw = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("role lookup failed") from exc

        roles: set[Role] = set()
        for value in raw:
            try:
                roles.add(Role(value))
            except ValueError:
                logger.warning("Ignoring unknown role %r for principal %s", value, principal_id)
        return roles


class ProfileStore:
    """Read access to tier profile tables (doctors, partners)."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_profile(self, tier: Role, principal_id: uuid.UUID) -> ProfileRecord | None:
        """The tier profile owned by a principal, or None if there is none."""
        if tier not in PROFILE_SOURCES:
            raise ValueError(f"Role {tier.value} has no profile table")

        model, schema = PROFILE_SOURCES[tier]
        try:
            result = await self._db.execute(select(model).where(model.user_id == principal_id))
            row = result.scalars().first()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"{tier.value} profile lookup failed") from exc

        if row is None:
            return None
        return schema.model_validate(row)


class GlobalIdStore:
    """Resolves a normalized global ID to its principal and credential handle."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def lookup(self, global_id: str) -> GlobalIdRecord | None:
        """Find the record for an upper-case global ID.

        Records without an owning principal or an email cannot be used to
        sign in and are reported as absent.
        """
        try:
            result = await self._db.execute(
                select(Profile.carebag_id, Profile.email, Profile.user_id).where(
                    Profile.carebag_id == global_id
                )
            )
            row = result.one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("global id lookup failed") from exc

        if row is None or not row.email or row.user_id is None:
            return None
        return GlobalIdRecord(global_id=row.carebag_id, email=row.email, user_id=row.user_id)
