"""Pydantic schemas for the access guard.

Read models only: the guard never mutates anything it is handed.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from carebag.models.enums import Role


class Principal(BaseModel):
    """The authenticated actor behind a session token."""

    id: uuid.UUID
    email: str | None = None

    model_config = {"frozen": True}


class _TierProfile(BaseModel):
    """Fields shared by every tier profile."""

    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    email: str
    is_active: bool = False

    model_config = {"frozen": True, "from_attributes": True}

    @field_validator("is_active", mode="before")
    @classmethod
    def null_is_inactive(cls, v: Any) -> bool:
        """A missing flag never grants access."""
        return bool(v)


class DoctorProfile(_TierProfile):
    global_id: str
    specialty: str | None = None
    hospital: str | None = None
    phone: str | None = None


class PartnerProfile(_TierProfile):
    partner_code: str
    logo_url: str | None = None


ProfileRecord = DoctorProfile | PartnerProfile


class GlobalIdRecord(BaseModel):
    """Resolved global ID → primary credential handle."""

    global_id: str
    email: str
    user_id: uuid.UUID

    model_config = {"frozen": True}


class GuardState(str, Enum):
    PENDING = "pending"
    ALLOWED = "allowed"
    DENIED = "denied"


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    ROLE_MISSING = "role_missing"
    SETUP_INCOMPLETE = "setup_incomplete"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCESS_CHECK_FAILED = "access_check_failed"


class AccessDecision(BaseModel):
    """Outcome of one guard evaluation.

    Callers must render PENDING as "loading", never as allowed.
    """

    state: GuardState
    role: Role
    reason: DenyReason | None = None
    principal: Principal | None = None
    profile: DoctorProfile | PartnerProfile | None = None
    redirect_to: str | None = None
    message: str | None = Field(default=None, description="Toast-style notice for the caller")

    model_config = {"frozen": True}

    @property
    def allowed(self) -> bool:
        return self.state is GuardState.ALLOWED

    @classmethod
    def pending(cls, role: Role) -> AccessDecision:
        return cls(state=GuardState.PENDING, role=role)
