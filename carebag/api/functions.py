"""Privileged function endpoints.

Each endpoint does one thing and answers with a JSON body: the result on
success, `{"error": message}` otherwise. Messages come from the
`AccessError` taxonomy only; internals are logged, never returned.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

from typing import TypeVar

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from carebag.access.errors import AccessError, InvalidRequest
from carebag.api.deps import get_admin_password_service, get_deletion_service, get_global_id_resolver
from carebag.schemas.auth import AdminDeleteUserRequest, AdminSetPasswordRequest, GlobalIdLoginRequest
from carebag.security.account_deletion import AccountDeletionService
from carebag.security.admin_password import AdminPasswordService
from carebag.security.global_id import GlobalIdResolver

BodyT = TypeVar("BodyT", bound=BaseModel)

router = APIRouter(prefix="/functions", tags=["functions"])


def _error(exc: AccessError) -> JSONResponse:
    return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)


async def _read_body(request: Request, schema: type[BodyT], missing_message: str) -> BodyT:
    """Parse a JSON body into `schema`; malformed input is an InvalidRequest."""
    try:
        return schema.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise InvalidRequest(missing_message) from None


# ── Global ID sign-in ────────────────────────────────────────────────


@router.options("/admin-global-id-lookup")
async def admin_global_id_lookup_preflight() -> Response:
    return Response(status_code=200)


@router.post("/admin-global-id-lookup")
async def admin_global_id_lookup(
    request: Request,
    resolver: GlobalIdResolver = Depends(get_global_id_resolver),
) -> JSONResponse:
    """Resolve a super admin's global ID and sign them in."""
    try:
        body = await _read_body(request, GlobalIdLoginRequest, "Global ID and password are required")
        auth_session = await resolver.resolve_and_sign_in(body.global_id, body.password)
    except AccessError as exc:
        return _error(exc)

    return JSONResponse({
        "session": auth_session.model_dump(mode="json", exclude={"user"}),
        "user": auth_session.user.model_dump(mode="json"),
    })


# ── Self-delete ──────────────────────────────────────────────────────


@router.options("/delete-my-account")
async def delete_my_account_preflight() -> Response:
    return Response(status_code=200)


@router.post("/delete-my-account")
async def delete_my_account(
    service: AccountDeletionService = Depends(get_deletion_service),
) -> JSONResponse:
    """Irreversibly delete the caller's own account."""
    try:
        await service.delete_own_account()
    except AccessError as exc:
        return _error(exc)
    return JSONResponse({"success": True})


# ── Admin delete ─────────────────────────────────────────────────────


@router.options("/delete-user")
async def delete_user_preflight() -> Response:
    return Response(status_code=200)


@router.post("/delete-user")
async def delete_user(
    request: Request,
    service: AccountDeletionService = Depends(get_deletion_service),
) -> JSONResponse:
    """Super admin deletes another account, fully or data only."""
    try:
        body = await _read_body(request, AdminDeleteUserRequest, "User ID is required")
    except InvalidRequest:
        # Authorization is checked before the body, so a bad body reads as "no user_id"
        body = AdminDeleteUserRequest()

    try:
        result = await service.delete_user_as_admin(body.user_id, body.delete_type)
    except AccessError as exc:
        return _error(exc)
    return JSONResponse({"success": True, "deleted_type": result.delete_type.value})


# ── Admin password set ───────────────────────────────────────────────


@router.options("/admin-reset-password")
async def admin_reset_password_preflight() -> Response:
    return Response(status_code=200)


@router.post("/admin-reset-password")
async def admin_reset_password(
    request: Request,
    service: AdminPasswordService = Depends(get_admin_password_service),
) -> JSONResponse:
    """Super admin sets a new password on another account."""
    try:
        body = await _read_body(request, AdminSetPasswordRequest, "User email is required")
    except InvalidRequest:
        body = AdminSetPasswordRequest()

    try:
        await service.set_password(body.user_email, body.new_password, body.user_name, body.user_type)
    except AccessError as exc:
        return _error(exc)
    return JSONResponse({"success": True, "message": "Password updated successfully"})
