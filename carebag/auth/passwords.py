"""bcrypt password hashing."""

from __future__ import annotations

import functools

import bcrypt

from carebag.config import settings


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.security.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("carebag-unknown-handle")


def burn_password_check(password: str) -> None:
    """Spend one bcrypt check when the handle is unknown, so timing matches a real miss."""
    verify_password(password, _dummy_hash())
