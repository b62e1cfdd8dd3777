"""Access check endpoint — lets a client ask the guard before rendering a tier."""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

from fastapi import APIRouter, Depends

from carebag.access.guard import AccessGuard
from carebag.api.deps import get_access_guard
from carebag.models.enums import Role

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/{role}")
async def check_access(
    role: Role,
    guard: AccessGuard = Depends(get_access_guard),
) -> dict:
    """Evaluate the guard for `role`. Always 200; the body carries the decision."""
    decision = await guard.check_access(role)
    return decision.model_dump(mode="json")
