"""
Authentication API endpoints.

Handles registration, login and token refresh.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from gatehouse.api.dependencies import get_deps
from gatehouse.api.errors import error_response
from gatehouse.core.container import Dependencies
from gatehouse.core.errors import Err

router = APIRouter(tags=["auth"])


async def read_json_body(request: Request) -> dict[str, Any]:
    """
    Request body as a dict; ``{}`` when missing, malformed or not an object.

    Field validation happens in the authentication flow so that rejected
    bodies are audited like every other outcome.
    """
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post("/register", status_code=201)
async def register(request: Request, deps: Dependencies = Depends(get_deps)):
    """
    Register a new user with the ``user`` role.

    Body: ``{email, password, password_confirm}``
    """
    body = await read_json_body(request)
    result = await deps.auth.register(
        body.get("email"),
        body.get("password"),
        body.get("password_confirm"),
        request,
    )
    if isinstance(result, Err):
        return error_response(result)

    return JSONResponse(status_code=201, content={"ok": True, "id": result.value})


@router.post("/login")
async def login(request: Request, deps: Dependencies = Depends(get_deps)):
    """
    Exchange credentials for an access/refresh token pair.

    Body: ``{email, password}``
    """
    body = await read_json_body(request)
    result = await deps.auth.login(body.get("email"), body.get("password"), request)
    if isinstance(result, Err):
        return error_response(result)

    return {"ok": True, "data": result.value.model_dump(by_alias=True)}


@router.post("/refresh")
async def refresh(request: Request, deps: Dependencies = Depends(get_deps)):
    """
    Exchange a refresh token for a new token pair.

    Body: ``{refreshToken}``
    """
    body = await read_json_body(request)
    result = await deps.auth.refresh(body.get("refreshToken"), request)
    if isinstance(result, Err):
        return error_response(result)

    return {"ok": True, "data": result.value.model_dump(by_alias=True)}
