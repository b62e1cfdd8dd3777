"""SQLAlchemy ORM models for CareBag.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from carebag.models.audit import AdminAuditLog
from carebag.models.base import Base
from carebag.models.doctor import Doctor
from carebag.models.document import Document
from carebag.models.enums import AuditAction, DeleteType, Role
from carebag.models.partner import Partner
from carebag.models.profile import Profile
from carebag.models.role import UserRole
from carebag.models.user import AuthUser

__all__ = [
    # Base
    "Base",
    # Models
    "AuthUser",
    "UserRole",
    "Doctor",
    "Partner",
    "Profile",
    "Document",
    "AdminAuditLog",
    # Enums
    "Role",
    "AuditAction",
    "DeleteType",
]
