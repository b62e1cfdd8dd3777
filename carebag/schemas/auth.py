"""Request/response schemas for sign-in and account endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class PublicUser(BaseModel):
    """Profile fields safe to return to the signed-in principal."""

    id: uuid.UUID
    email: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuthSession(BaseModel):
    """A freshly issued session."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: int
    user: PublicUser


class GlobalIdLoginRequest(BaseModel):
    """Body of the global-ID lookup call. Presence is checked by the resolver."""

    global_id: str | None = None
    password: str | None = None


class AdminDeleteUserRequest(BaseModel):
    user_id: str | None = None
    delete_type: str | None = None


class AdminSetPasswordRequest(BaseModel):
    """Body of the admin password call; accepts the camelCase keys web clients send."""

    user_email: str | None = Field(default=None, alias="userEmail")
    user_name: str | None = Field(default=None, alias="userName")
    user_type: str | None = Field(default=None, alias="userType")
    new_password: str | None = Field(default=None, alias="newPassword")

    model_config = {"populate_by_name": True}
