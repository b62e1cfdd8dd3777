"""Session provider — the per-request view of who is calling.

Tokens are HS256 JWTs carrying `sub` (principal id), `email` and `sid`.
Each `sid` names a Redis key `session:{sid}` holding the principal id for
the token's lifetime; signing out deletes the key, so a revoked token is
refused even before it expires. `user_sessions:{user_id}` indexes the live
sids of a principal so a deleted account loses every session at once.

One provider is built per request (see `carebag.api.deps`) and injected
into the guard and services; nothing here is process-global.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.errors import AuthError, StoreUnavailable
from carebag.auth.passwords import burn_password_check, hash_password, verify_password
from carebag.config import settings
from carebag.models.user import AuthUser
from carebag.schemas.access import Principal
from carebag.schemas.auth import AuthSession, PublicUser

logger = logging.getLogger(__name__)


def _session_key(sid: str) -> str:
    return f"session:{sid}"


def _user_sessions_key(user_id: uuid.UUID | str) -> str:
    return f"user_sessions:{user_id}"


class SessionProvider:
    """Resolves, issues, and revokes sessions for one request."""

    def __init__(
        self,
        db: AsyncSession,
        redis: aioredis.Redis,
        token: str | None = None,
        *,
        secret: str | None = None,
        algorithm: str | None = None,
        ttl_minutes: int | None = None,
    ) -> None:
        self._db = db
        self._redis = redis
        self.token = token
        self._secret = secret if secret is not None else settings.security.jwt_secret
        self._algorithm = algorithm or settings.security.jwt_algorithm
        self._ttl = timedelta(minutes=ttl_minutes or settings.security.access_token_ttl_minutes)

        # Current-principal cell, filled on first lookup
        self._principal: Principal | None = None
        self._resolved = False

    # ── Token helpers ────────────────────────────────────────────────

    def _decode(self, token: str) -> dict[str, Any] | None:
        """Verify a token's signature and expiry; None if unusable."""
        if not self._secret:
            logger.error("JWT_SECRET not configured — refusing all session tokens")
            return None
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub", "sid"]},
            )
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected session token: %s", exc)
            return None

    # ── Contract ─────────────────────────────────────────────────────

    async def current_principal(self) -> Principal | None:
        """The authenticated principal, or None.

        Raises StoreUnavailable if the session store cannot be read.
        """
        if self._resolved:
            return self._principal

        principal = None
        payload = self._decode(self.token) if self.token else None
        if payload is not None:
            try:
                stored = await self._redis.get(_session_key(payload["sid"]))
            except RedisError as exc:
                raise StoreUnavailable("session store unavailable") from exc

            if stored is not None and stored == payload["sub"]:
                principal = Principal(id=uuid.UUID(payload["sub"]), email=payload.get("email"))
            else:
                logger.info("Session %s revoked or unknown", payload["sid"])

        self._principal = principal
        self._resolved = True
        return principal

    async def sign_out(self) -> None:
        """Revoke the current token's session."""
        payload = self._decode(self.token) if self.token else None
        if payload is not None:
            try:
                await self._redis.delete(_session_key(payload["sid"]))
                await self._redis.srem(_user_sessions_key(payload["sub"]), payload["sid"])
            except RedisError as exc:
                raise StoreUnavailable("session store unavailable") from exc
            logger.info("Signed out principal=%s sid=%s", payload["sub"], payload["sid"])

        self._principal = None
        self._resolved = True

    async def sign_in_with_credential(self, handle: str, password: str) -> AuthSession:
        """Verify a handle/password pair and issue a new session.

        Raises AuthError on any mismatch, StoreUnavailable on backend faults.
        """
        if not self._secret:
            logger.error("JWT_SECRET not configured — sign-in disabled")
            raise AuthError("signing key not configured")

        try:
            result = await self._db.execute(
                select(AuthUser).where(func.lower(AuthUser.email) == handle.strip().lower())
            )
            user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("auth user lookup failed") from exc

        if user is None:
            await asyncio.to_thread(burn_password_check, password)
            raise AuthError("unknown handle")

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise AuthError("password mismatch")

        return await self._issue(user)

    async def delete_user(self, principal_id: uuid.UUID) -> None:
        """Delete the primary credential record and commit.

        Owned rows go with it through ON DELETE CASCADE (or were removed
        earlier in the same transaction by the caller). Live sessions of
        the principal are revoked afterwards.
        """
        try:
            result = await self._db.execute(delete(AuthUser).where(AuthUser.id == principal_id))
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise StoreUnavailable(f"auth user {principal_id} not found")
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailable("auth user delete failed") from exc
        except StoreUnavailable:
            await self._db.rollback()
            raise

        logger.info("Deleted auth user %s", principal_id)
        await self._revoke_all(principal_id)

    async def set_password(self, principal_id: uuid.UUID, password: str) -> None:
        """Replace a principal's password hash and commit.

        Every live session of the principal is revoked afterwards, so the
        old password cannot keep an existing token alive.
        """
        password_hash = await asyncio.to_thread(hash_password, password)
        try:
            result = await self._db.execute(
                update(AuthUser).where(AuthUser.id == principal_id).values(password_hash=password_hash)
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise StoreUnavailable(f"auth user {principal_id} not found")
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailable("auth user password update failed") from exc
        except StoreUnavailable:
            await self._db.rollback()
            raise

        logger.info("Password replaced for auth user %s", principal_id)
        await self._revoke_all(principal_id)

    # ── Internals ────────────────────────────────────────────────────

    async def _issue(self, user: AuthUser) -> AuthSession:
        sid = uuid.uuid4().hex
        now = datetime.now(UTC)
        expires = now + self._ttl
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "sid": sid,
            "iat": now,
            "exp": expires,
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        ttl_seconds = int(self._ttl.total_seconds())

        try:
            await self._redis.set(_session_key(sid), str(user.id), ex=ttl_seconds)
            await self._redis.sadd(_user_sessions_key(user.id), sid)
            await self._redis.expire(_user_sessions_key(user.id), ttl_seconds)
        except RedisError as exc:
            raise StoreUnavailable("session store unavailable") from exc

        self.token = token
        self._principal = Principal(id=user.id, email=user.email)
        self._resolved = True
        logger.info("Issued session sid=%s principal=%s", sid, user.id)

        return AuthSession(
            access_token=token,
            expires_in=ttl_seconds,
            expires_at=int(expires.timestamp()),
            user=PublicUser.model_validate(user),
        )

    async def _revoke_all(self, principal_id: uuid.UUID) -> None:
        """Drop every live session of a principal.

        The change that prompted this has already committed, so failures
        here are logged only; orphaned keys expire with their TTL.
        """
        if self._principal is not None and self._principal.id == principal_id:
            self._principal = None
            self._resolved = True
        try:
            sids = await self._redis.smembers(_user_sessions_key(principal_id))
            keys = [_session_key(sid) for sid in sids]
            if keys:
                await self._redis.delete(*keys)
            await self._redis.delete(_user_sessions_key(principal_id))
        except RedisError:
            logger.exception("Failed to revoke sessions for principal %s", principal_id)
