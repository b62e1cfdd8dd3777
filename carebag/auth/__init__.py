"""Session provider and credential helpers."""

from carebag.auth.session import SessionProvider

__all__ = ["SessionProvider"]
