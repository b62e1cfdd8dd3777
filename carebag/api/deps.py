"""FastAPI dependencies — one session provider and set of stores per request."""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from carebag.access.guard import AccessGuard
from carebag.access.stores import GlobalIdStore, ProfileStore, RoleStore
from carebag.auth.session import SessionProvider
from carebag.db.engine import get_redis, get_session
from carebag.security.account_deletion import AccountDeletionService
from carebag.security.admin_password import AdminPasswordService
from carebag.security.global_id import GlobalIdResolver

bearer = HTTPBearer(auto_error=False)


async def get_session_provider(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_session),
    redis: aioredis.Redis = Depends(get_redis),
) -> SessionProvider:
    """The caller's session; token is None when no bearer header was sent."""
    token = credentials.credentials if credentials is not None else None
    return SessionProvider(db, redis, token)


async def get_access_guard(
    session: SessionProvider = Depends(get_session_provider),
    db: AsyncSession = Depends(get_session),
) -> AccessGuard:
    return AccessGuard(session, RoleStore(db), ProfileStore(db))


async def get_global_id_resolver(
    session: SessionProvider = Depends(get_session_provider),
    db: AsyncSession = Depends(get_session),
) -> GlobalIdResolver:
    return GlobalIdResolver(db, session, GlobalIdStore(db), RoleStore(db))


async def get_deletion_service(
    session: SessionProvider = Depends(get_session_provider),
    db: AsyncSession = Depends(get_session),
) -> AccountDeletionService:
    return AccountDeletionService(db, session, RoleStore(db))


async def get_admin_password_service(
    session: SessionProvider = Depends(get_session_provider),
    db: AsyncSession = Depends(get_session),
) -> AdminPasswordService:
    return AdminPasswordService(db, session, RoleStore(db))
