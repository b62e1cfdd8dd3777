"""Tests for AccountDeletionService — self-delete and admin delete."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from carebag.access.errors import (
    AdminRequired,
    DeletionFailed,
    InvalidRequest,
    SelfDeleteForbidden,
    SessionExpired,
    StoreUnavailable,
)
from carebag.models.enums import AuditAction, DeleteType, Role
from carebag.schemas.access import Principal
from carebag.security.account_deletion import OWNED_TABLES, AccountDeletionService

# ── Helpers ──────────────────────────────────────────────────────────


def _make_db():
    """Build a mock AsyncSession."""
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _make_service(principal=None, roles=None, cascade=True, db=None):
    db = db or _make_db()
    calls: list[str] = []

    session = AsyncMock()
    session.current_principal = AsyncMock(return_value=principal)

    async def _delete_user(principal_id):
        calls.append("delete_user")

    session.delete_user = AsyncMock(side_effect=_delete_user)

    role_store = AsyncMock()
    role_store.list_roles = AsyncMock(return_value=set(roles or ()))

    async def _append(_db, entry):
        calls.append("audit")
        return True

    audit = AsyncMock()
    audit.append_best_effort = AsyncMock(side_effect=_append)

    service = AccountDeletionService(db, session, role_store, audit=audit, cascade_deletes=cascade)
    return service, session, role_store, audit, calls


def _principal():
    return Principal(id=uuid.uuid4(), email="user@example.com")


def _execute_result(first=None, scalar=None):
    result = MagicMock()
    result.first.return_value = first
    result.scalar_one_or_none.return_value = scalar
    result.rowcount = 1
    return result


# ── Self-delete ──────────────────────────────────────────────────────


class TestDeleteOwnAccount:
    @pytest.mark.asyncio()
    async def test_no_session_is_expired(self):
        service, session, role_store, audit, _ = _make_service(principal=None)

        with pytest.raises(SessionExpired) as exc_info:
            await service.delete_own_account()

        assert exc_info.value.status_code == 401
        role_store.list_roles.assert_not_awaited()
        session.delete_user.assert_not_awaited()
        audit.append_best_effort.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_session_store_fault_is_expired(self):
        service, session, *_ = _make_service()
        session.current_principal.side_effect = StoreUnavailable("redis down")

        with pytest.raises(SessionExpired):
            await service.delete_own_account()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("roles", [{Role.PARTNER}, {Role.SUPER_ADMIN}, {Role.USER, Role.PARTNER}])
    async def test_privileged_roles_are_refused(self, roles):
        service, session, _, audit, _ = _make_service(principal=_principal(), roles=roles)

        with pytest.raises(SelfDeleteForbidden) as exc_info:
            await service.delete_own_account()

        assert exc_info.value.status_code == 403
        session.delete_user.assert_not_awaited()
        audit.append_best_effort.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_role_lookup_fault_fails_closed(self):
        service, session, role_store, _, _ = _make_service(principal=_principal())
        role_store.list_roles.side_effect = StoreUnavailable("db down")

        with pytest.raises(DeletionFailed):
            await service.delete_own_account()

        session.delete_user.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_user_is_deleted_then_audited(self):
        principal = _principal()
        service, session, _, audit, calls = _make_service(
            principal=principal, roles={Role.USER, Role.DOCTOR}
        )

        await service.delete_own_account()

        session.delete_user.assert_awaited_once_with(principal.id)
        audit.append_best_effort.assert_awaited_once()
        assert calls == ["delete_user", "audit"]

        entry = audit.append_best_effort.call_args[0][1]
        assert entry.action is AuditAction.SELF_DELETE_ACCOUNT
        assert entry.actor_id == principal.id
        assert entry.target_type == "user"
        assert entry.target_id == principal.id
        assert entry.details == {"email": "user@example.com", "self_initiated": True}

    @pytest.mark.asyncio()
    async def test_delete_failure_writes_no_audit(self):
        service, session, _, audit, _ = _make_service(principal=_principal())
        session.delete_user.side_effect = StoreUnavailable("fk violation")

        with pytest.raises(DeletionFailed) as exc_info:
            await service.delete_own_account()

        assert exc_info.value.status_code == 500
        audit.append_best_effort.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_audit_failure_does_not_fail_request(self):
        service, _, _, audit, _ = _make_service(principal=_principal())
        audit.append_best_effort.side_effect = None
        audit.append_best_effort.return_value = False

        await service.delete_own_account()

        audit.append_best_effort.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_cascade_mode_issues_no_explicit_deletes(self):
        db = _make_db()
        service, *_ = _make_service(principal=_principal(), cascade=True, db=db)

        await service.delete_own_account()

        db.execute.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_without_cascade_owned_rows_are_deleted_first(self):
        db = _make_db()
        db.execute = AsyncMock(return_value=_execute_result())
        service, session, *_ = _make_service(principal=_principal(), cascade=False, db=db)

        await service.delete_own_account()

        assert db.execute.await_count == len(OWNED_TABLES)
        session.delete_user.assert_awaited_once()


# ── Admin delete ─────────────────────────────────────────────────────


class TestDeleteUserAsAdmin:
    @pytest.mark.asyncio()
    async def test_requires_session(self):
        service, *_ = _make_service(principal=None)

        with pytest.raises(SessionExpired):
            await service.delete_user_as_admin(str(uuid.uuid4()))

    @pytest.mark.asyncio()
    async def test_requires_super_admin(self):
        service, session, *_ = _make_service(principal=_principal(), roles={Role.ADMIN})

        with pytest.raises(AdminRequired) as exc_info:
            await service.delete_user_as_admin(str(uuid.uuid4()))

        assert exc_info.value.status_code == 403
        session.delete_user.assert_not_awaited()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("user_id", [None, "", "not-a-uuid"])
    async def test_bad_target(self, user_id):
        service, *_ = _make_service(principal=_principal(), roles={Role.SUPER_ADMIN})

        with pytest.raises(InvalidRequest):
            await service.delete_user_as_admin(user_id)

    @pytest.mark.asyncio()
    async def test_cannot_delete_self(self):
        admin = _principal()
        service, *_ = _make_service(principal=admin, roles={Role.SUPER_ADMIN})

        with pytest.raises(InvalidRequest) as exc_info:
            await service.delete_user_as_admin(str(admin.id))

        assert exc_info.value.public_message == "You cannot delete your own account"

    @pytest.mark.asyncio()
    async def test_unknown_delete_type(self):
        service, *_ = _make_service(principal=_principal(), roles={Role.SUPER_ADMIN})

        with pytest.raises(InvalidRequest):
            await service.delete_user_as_admin(str(uuid.uuid4()), "partial")

    @pytest.mark.asyncio()
    async def test_full_delete_of_partner(self):
        admin = _principal()
        target = uuid.uuid4()
        db = _make_db()
        profile_row = MagicMock()
        profile_row.name = "Acme Owner"
        profile_row.email = "owner@acme.example"
        db.execute = AsyncMock(side_effect=[
            _execute_result(first=profile_row),
            _execute_result(scalar="Acme Clinic"),
        ])
        service, session, _, audit, calls = _make_service(
            principal=admin, roles={Role.SUPER_ADMIN}, db=db
        )

        result = await service.delete_user_as_admin(str(target), "full")

        assert result.delete_type is DeleteType.FULL
        assert result.target_type == "partner"
        session.delete_user.assert_awaited_once_with(target)
        assert calls == ["delete_user", "audit"]

        entry = audit.append_best_effort.call_args[0][1]
        assert entry.action is AuditAction.DELETE_USER
        assert entry.actor_id == admin.id
        assert entry.target_id == target
        assert entry.details == {
            "user_name": "Acme Owner",
            "user_email": "owner@acme.example",
            "partner_name": "Acme Clinic",
            "delete_type": "full",
        }

    @pytest.mark.asyncio()
    async def test_data_delete_keeps_login(self):
        target = uuid.uuid4()
        db = _make_db()
        db.execute = AsyncMock(side_effect=[
            _execute_result(first=None),
            _execute_result(scalar=None),
            _execute_result(),
            _execute_result(),
        ])
        service, session, _, audit, _ = _make_service(
            principal=_principal(), roles={Role.SUPER_ADMIN}, db=db
        )

        result = await service.delete_user_as_admin(str(target), "data")

        assert result.delete_type is DeleteType.DATA
        assert result.target_type == "user"
        session.delete_user.assert_not_awaited()
        db.commit.assert_awaited_once()

        entry = audit.append_best_effort.call_args[0][1]
        assert entry.action is AuditAction.DELETE_USER_DATA
        assert entry.details["user_name"] == "Unknown"
        assert entry.details["user_email"] == "Unknown"

    @pytest.mark.asyncio()
    async def test_failed_delete_is_not_audited(self):
        db = _make_db()
        db.execute = AsyncMock(side_effect=[_execute_result(), _execute_result()])
        service, session, _, audit, _ = _make_service(
            principal=_principal(), roles={Role.SUPER_ADMIN}, db=db
        )
        session.delete_user.side_effect = StoreUnavailable("boom")

        with pytest.raises(DeletionFailed):
            await service.delete_user_as_admin(str(uuid.uuid4()), "full")

        audit.append_best_effort.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_omitted_delete_type_keeps_login(self):
        db = _make_db()
        db.execute = AsyncMock(return_value=_execute_result())
        service, session, _, audit, _ = _make_service(
            principal=_principal(), roles={Role.SUPER_ADMIN}, db=db
        )

        result = await service.delete_user_as_admin(str(uuid.uuid4()))

        assert result.delete_type is DeleteType.DATA
        session.delete_user.assert_not_awaited()
        entry = audit.append_best_effort.call_args[0][1]
        assert entry.action is AuditAction.DELETE_USER_DATA
        assert entry.details["delete_type"] == "data"
