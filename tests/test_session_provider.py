"""Tests for SessionProvider — token issue, resolution, revocation, deletion."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from carebag.access.errors import AuthError, StoreUnavailable
from carebag.auth.passwords import hash_password, verify_password
from carebag.auth.session import SessionProvider
from carebag.models.user import AuthUser

SECRET = "test-secret-that-is-long-enough-for-hs256"
USER_ID = uuid.uuid4()


# ── Helpers ──────────────────────────────────────────────────────────


def _make_redis(stored: str | None = None) -> AsyncMock:
    """Build a mock aioredis.Redis with decoded responses."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=stored)
    redis.smembers = AsyncMock(return_value=set())
    return redis


def _make_db(user=None, rowcount=1) -> AsyncMock:
    db = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    result.rowcount = rowcount
    db.execute = AsyncMock(return_value=result)
    return db


def _user(password="correct horse"):
    return AuthUser(id=USER_ID, email="admin@example.com", password_hash=hash_password(password, rounds=4))


def _token(sub=None, sid="sid-1", secret=SECRET, expires_in=timedelta(minutes=5), **extra):
    now = datetime.now(UTC)
    payload = {
        "sub": str(sub or USER_ID),
        "email": "admin@example.com",
        "sid": sid,
        "iat": now,
        "exp": now + expires_in,
        **extra,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def _provider(db=None, redis=None, token=None, secret=SECRET):
    return SessionProvider(db or _make_db(), redis or _make_redis(), token, secret=secret, ttl_minutes=30)


# ── current_principal ────────────────────────────────────────────────


class TestCurrentPrincipal:
    @pytest.mark.asyncio()
    async def test_no_token(self):
        redis = _make_redis()

        assert await _provider(redis=redis).current_principal() is None
        redis.get.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_live_session_resolves(self):
        redis = _make_redis(stored=str(USER_ID))

        principal = await _provider(redis=redis, token=_token()).current_principal()

        assert principal.id == USER_ID
        assert principal.email == "admin@example.com"
        redis.get.assert_awaited_once_with("session:sid-1")

    @pytest.mark.asyncio()
    async def test_revoked_session_is_anonymous(self):
        redis = _make_redis(stored=None)

        assert await _provider(redis=redis, token=_token()).current_principal() is None

    @pytest.mark.asyncio()
    async def test_session_of_other_principal_is_refused(self):
        redis = _make_redis(stored=str(uuid.uuid4()))

        assert await _provider(redis=redis, token=_token()).current_principal() is None

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "token",
        [
            "not-a-jwt",
            _token(secret="a-different-secret-of-sufficient-length"),
            _token(expires_in=timedelta(minutes=-1)),
        ],
    )
    async def test_bad_tokens_are_anonymous(self, token):
        redis = _make_redis(stored=str(USER_ID))

        assert await _provider(redis=redis, token=token).current_principal() is None
        redis.get.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_unset_secret_refuses_everything(self):
        redis = _make_redis(stored=str(USER_ID))

        assert await _provider(redis=redis, token=_token(), secret="").current_principal() is None

    @pytest.mark.asyncio()
    async def test_redis_fault_raises_store_unavailable(self):
        redis = _make_redis()
        redis.get.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailable):
            await _provider(redis=redis, token=_token()).current_principal()

    @pytest.mark.asyncio()
    async def test_lookup_is_cached_per_request(self):
        redis = _make_redis(stored=str(USER_ID))
        provider = _provider(redis=redis, token=_token())

        await provider.current_principal()
        await provider.current_principal()

        redis.get.assert_awaited_once()


# ── sign_out ─────────────────────────────────────────────────────────


class TestSignOut:
    @pytest.mark.asyncio()
    async def test_deletes_session_key(self):
        redis = _make_redis(stored=str(USER_ID))
        provider = _provider(redis=redis, token=_token(sid="sid-9"))

        await provider.sign_out()

        redis.delete.assert_awaited_once_with("session:sid-9")
        redis.srem.assert_awaited_once_with(f"user_sessions:{USER_ID}", "sid-9")
        assert await provider.current_principal() is None

    @pytest.mark.asyncio()
    async def test_without_token_is_a_no_op(self):
        redis = _make_redis()

        await _provider(redis=redis).sign_out()

        redis.delete.assert_not_awaited()


# ── sign_in_with_credential ──────────────────────────────────────────


class TestSignIn:
    @pytest.mark.asyncio()
    async def test_issues_token_and_records_session(self):
        redis = _make_redis()
        provider = _provider(db=_make_db(user=_user()), redis=redis)

        auth = await provider.sign_in_with_credential("Admin@Example.com", "correct horse")

        claims = jwt.decode(auth.access_token, SECRET, algorithms=["HS256"])
        assert claims["sub"] == str(USER_ID)
        assert claims["email"] == "admin@example.com"
        assert auth.token_type == "bearer"
        assert auth.expires_in == 1800
        assert auth.user.id == USER_ID

        redis.set.assert_awaited_once_with(f"session:{claims['sid']}", str(USER_ID), ex=1800)
        redis.sadd.assert_awaited_once_with(f"user_sessions:{USER_ID}", claims["sid"])
        redis.expire.assert_awaited_once_with(f"user_sessions:{USER_ID}", 1800)

    @pytest.mark.asyncio()
    async def test_signed_in_principal_is_current(self):
        provider = _provider(db=_make_db(user=_user()))

        await provider.sign_in_with_credential("admin@example.com", "correct horse")

        principal = await provider.current_principal()
        assert principal.id == USER_ID

    @pytest.mark.asyncio()
    async def test_wrong_password(self):
        redis = _make_redis()
        provider = _provider(db=_make_db(user=_user()), redis=redis)

        with pytest.raises(AuthError):
            await provider.sign_in_with_credential("admin@example.com", "wrong")

        redis.set.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_unknown_handle(self):
        provider = _provider(db=_make_db(user=None))

        with pytest.raises(AuthError):
            await provider.sign_in_with_credential("nobody@example.com", "whatever")

    @pytest.mark.asyncio()
    async def test_unset_secret_disables_sign_in(self):
        db = _make_db(user=_user())

        with pytest.raises(AuthError):
            await _provider(db=db, secret="").sign_in_with_credential("admin@example.com", "correct horse")

        db.execute.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_db_fault(self):
        db = _make_db()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(StoreUnavailable):
            await _provider(db=db).sign_in_with_credential("admin@example.com", "pw")


# ── delete_user ──────────────────────────────────────────────────────


class TestDeleteUser:
    @pytest.mark.asyncio()
    async def test_commits_and_revokes_sessions(self):
        db = _make_db(rowcount=1)
        redis = _make_redis()
        redis.smembers.return_value = {"a", "b"}

        await _provider(db=db, redis=redis).delete_user(USER_ID)

        db.commit.assert_awaited_once()
        deleted = [call.args for call in redis.delete.await_args_list]
        assert sorted(deleted[0]) == ["session:a", "session:b"]
        assert deleted[1] == (f"user_sessions:{USER_ID}",)

    @pytest.mark.asyncio()
    async def test_missing_row_is_a_store_fault(self):
        db = _make_db(rowcount=0)

        with pytest.raises(StoreUnavailable):
            await _provider(db=db).delete_user(USER_ID)

        db.commit.assert_not_awaited()
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_db_fault_rolls_back(self):
        db = _make_db()
        db.execute.side_effect = OperationalError("DELETE", {}, Exception("fk"))

        with pytest.raises(StoreUnavailable):
            await _provider(db=db).delete_user(USER_ID)

        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_revoke_failure_is_not_fatal(self):
        db = _make_db(rowcount=1)
        redis = _make_redis()
        redis.smembers.side_effect = RedisConnectionError("refused")

        await _provider(db=db, redis=redis).delete_user(USER_ID)

        db.commit.assert_awaited_once()


# ── set_password ─────────────────────────────────────────────────────


class TestSetPassword:
    @pytest.mark.asyncio()
    async def test_stores_new_hash_and_revokes_sessions(self):
        db = _make_db(rowcount=1)
        redis = _make_redis()
        redis.smembers.return_value = {"old"}

        with patch("carebag.auth.session.hash_password", side_effect=lambda pw: hash_password(pw, rounds=4)):
            await _provider(db=db, redis=redis).set_password(USER_ID, "new-secret")

        stmt = db.execute.call_args[0][0]
        new_hash = stmt.compile().params["password_hash"]
        assert verify_password("new-secret", new_hash)
        db.commit.assert_awaited_once()
        assert redis.delete.await_args_list[0].args == ("session:old",)

    @pytest.mark.asyncio()
    async def test_unknown_principal(self):
        db = _make_db(rowcount=0)

        with patch("carebag.auth.session.hash_password", return_value="$2b$04$x"):
            with pytest.raises(StoreUnavailable):
                await _provider(db=db).set_password(USER_ID, "new-secret")

        db.commit.assert_not_awaited()
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_caller_stays_signed_in_when_revoking_someone_else(self):
        redis = _make_redis(stored=str(USER_ID))
        provider = _provider(db=_make_db(rowcount=1), redis=redis, token=_token())
        await provider.current_principal()

        with patch("carebag.auth.session.hash_password", return_value="$2b$04$x"):
            await provider.set_password(uuid.uuid4(), "new-secret")

        principal = await provider.current_principal()
        assert principal.id == USER_ID
