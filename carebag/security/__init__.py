"""Privileged operations — global-ID sign-in, account deletion, admin password set, audit."""

from carebag.security.account_deletion import AccountDeletionService
from carebag.security.admin_password import AdminPasswordService
from carebag.security.audit import audit_logger
from carebag.security.global_id import GlobalIdResolver

__all__ = ["AccountDeletionService", "AdminPasswordService", "GlobalIdResolver", "audit_logger"]
