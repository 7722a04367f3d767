"""
User API endpoints.

Listing is admin-only. A user may read or delete their own record; an
admin may read or delete any record.
"""

from fastapi import APIRouter, Depends, Request

from gatehouse.api.dependencies import authorize, get_deps, require_role
from gatehouse.api.errors import error_response
from gatehouse.core.container import Dependencies
from gatehouse.core.errors import Err
from gatehouse.models import Identity, ResourceType, Role

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def list_users(
    request: Request,
    identity: Identity = Depends(require_role(Role.ADMIN, resource_type=ResourceType.USERS)),
    deps: Dependencies = Depends(get_deps),
):
    """List all users as ``{id, email, role}``."""
    result = await deps.users.list_users(request)
    if isinstance(result, Err):
        return error_response(result)

    return {"ok": True, "users": result.value}


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    request: Request,
    identity: Identity = Depends(authorize),
    deps: Dependencies = Depends(get_deps),
):
    result = await deps.users.get_user(user_id, identity, request)
    if isinstance(result, Err):
        return error_response(result)

    return {"ok": True, "user": result.value}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    identity: Identity = Depends(authorize),
    deps: Dependencies = Depends(get_deps),
):
    result = await deps.users.delete_user(user_id, identity, request)
    if isinstance(result, Err):
        return error_response(result)

    return {"ok": True}
