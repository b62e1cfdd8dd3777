"""Access guard — decides whether a principal may enter a privileged tier.

Each evaluation is a small state machine:

    PENDING ──► ALLOWED
        └─────► DENIED

A `GuardCheck` starts PENDING and reaches exactly one terminal state. A
fresh check re-runs the whole machine. Steps, in order, each able to end
in DENIED:

    1. resolve the current principal          → UNAUTHENTICATED
    2. look up the required role              → ROLE_MISSING
    3. load the tier profile (doctor/partner) → SETUP_INCOMPLETE
    4. profile inactive: sign out             → ACCOUNT_DEACTIVATED

Any collaborator fault ends in DENIED/ACCESS_CHECK_FAILED. There is no
path from a fault to ALLOWED.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from carebag.models.enums import Role
from carebag.schemas.access import AccessDecision, DenyReason, GuardState

if TYPE_CHECKING:
    from carebag.access.stores import ProfileStore, RoleStore
    from carebag.auth.session import SessionProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierPolicy:
    """How the guard treats one role."""

    label: str
    has_profile: bool
    login_redirect: str | None  # where an unauthenticated caller goes
    deny_redirect: str | None  # where any other denial goes


TIER_POLICIES: dict[Role, TierPolicy] = {
    Role.DOCTOR: TierPolicy("doctor", True, "/doctor/login", "/doctor/login"),
    Role.PARTNER: TierPolicy("partner", True, "/partner/login", "/partner/login"),
    Role.SUPER_ADMIN: TierPolicy("super admin", False, "/admin/login", "/dashboard"),
    Role.ADMIN: TierPolicy("admin", False, None, None),
    Role.USER: TierPolicy("user", False, "/login", "/login"),
}

_missing = set(Role) - set(TIER_POLICIES)
if _missing:
    raise RuntimeError(f"No access policy for roles: {sorted(r.value for r in _missing)}")


def _deny_message(reason: DenyReason, policy: TierPolicy) -> str:
    messages = {
        DenyReason.UNAUTHENTICATED: "Please sign in to continue.",
        DenyReason.ROLE_MISSING: f"You don't have {policy.label} privileges.",
        DenyReason.SETUP_INCOMPLETE: f"Your {policy.label} account is not fully configured.",
        DenyReason.ACCOUNT_DEACTIVATED: f"Your {policy.label} account has been deactivated.",
        DenyReason.ACCESS_CHECK_FAILED: f"Failed to verify {policy.label} access.",
    }
    return messages[reason]


class AccessGuard:
    """Evaluates required roles against the session, role and profile stores."""

    def __init__(
        self,
        session: SessionProvider,
        role_store: RoleStore,
        profile_store: ProfileStore,
    ) -> None:
        self._session = session
        self._roles = role_store
        self._profiles = profile_store

    def new_check(self, required_role: Role) -> GuardCheck:
        return GuardCheck(self, required_role)

    async def check_access(self, required_role: Role) -> AccessDecision:
        """Run one complete check and return its terminal decision."""
        return await self.new_check(required_role).run()

    def _deny(self, role: Role, reason: DenyReason) -> AccessDecision:
        policy = TIER_POLICIES[role]
        redirect = policy.login_redirect if reason is DenyReason.UNAUTHENTICATED else policy.deny_redirect
        return AccessDecision(
            state=GuardState.DENIED,
            role=role,
            reason=reason,
            redirect_to=redirect,
            message=_deny_message(reason, policy),
        )

    async def _evaluate(self, role: Role) -> AccessDecision:
        policy = TIER_POLICIES[role]
        try:
            principal = await self._session.current_principal()
            if principal is None:
                return self._deny(role, DenyReason.UNAUTHENTICATED)

            roles = await self._roles.list_roles(principal.id)
            if role not in roles:
                logger.info("Access denied: principal=%s lacks role=%s", principal.id, role.value)
                return self._deny(role, DenyReason.ROLE_MISSING)

            profile = None
            if policy.has_profile:
                profile = await self._profiles.get_profile(role, principal.id)
                if profile is None:
                    logger.warning(
                        "Role %s present but no profile record for principal=%s",
                        role.value,
                        principal.id,
                    )
                    return self._deny(role, DenyReason.SETUP_INCOMPLETE)

                if not profile.is_active:
                    await self._session.sign_out()
                    logger.info("Deactivated %s profile; signed out principal=%s", role.value, principal.id)
                    return self._deny(role, DenyReason.ACCOUNT_DEACTIVATED)

        except Exception:
            logger.exception("Access check failed for role=%s", role.value)
            return self._deny(role, DenyReason.ACCESS_CHECK_FAILED)

        return AccessDecision(
            state=GuardState.ALLOWED,
            role=role,
            principal=principal,
            profile=profile,
        )


class GuardCheck:
    """One evaluation of the guard state machine.

    `cancel()` marks a superseded check; its result is then discarded and
    the check stays PENDING.
    """

    def __init__(self, guard: AccessGuard, required_role: Role) -> None:
        self._guard = guard
        self.required_role = required_role
        self.decision = AccessDecision.pending(required_role)
        self._cancelled = False

    @property
    def state(self) -> GuardState:
        return self.decision.state

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    async def run(self) -> AccessDecision:
        """Evaluate once. Terminal states are never re-entered."""
        if self.state is not GuardState.PENDING or self._cancelled:
            return self.decision

        decision = await self._guard._evaluate(self.required_role)
        if self._cancelled:
            logger.debug("Discarding result of cancelled %s check", self.required_role.value)
            return self.decision

        self.decision = decision
        return decision
