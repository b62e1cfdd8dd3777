"""AuditLogEntry schema — what a privileged operation hands to the audit log."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field

from carebag.models.enums import AuditAction


class AuditLogEntry(BaseModel):
    """One privileged action. The timestamp is assigned by the database."""

    actor_id: uuid.UUID | None
    action: AuditAction
    target_type: str | None = None
    target_id: uuid.UUID | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
