"""Access control — role guard, stores, error taxonomy."""

from carebag.access.guard import AccessGuard, GuardCheck, TIER_POLICIES
from carebag.access.stores import GlobalIdStore, ProfileStore, RoleStore

__all__ = [
    "AccessGuard",
    "GuardCheck",
    "TIER_POLICIES",
    "GlobalIdStore",
    "ProfileStore",
    "RoleStore",
]
