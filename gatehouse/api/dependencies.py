"""
FastAPI Dependencies for gatehouse.

The authorization gate and role checks used by the routers.
"""

import logging
from typing import Callable

from fastapi import Depends, Request

from gatehouse.core.audit import client_ip
from gatehouse.core.container import Dependencies
from gatehouse.core.errors import AppError, ErrorKind
from gatehouse.models import Identity, ResourceType, Role, TokenType

logger = logging.getLogger("gatehouse.auth")


def get_deps(request: Request) -> Dependencies:
    """The service container built by the app factory."""
    return request.app.state.deps


# =============================================================================
# AUTHORIZATION GATE
# =============================================================================

async def authorize(request: Request, deps: Dependencies = Depends(get_deps)) -> Identity:
    """
    Require a valid access token.

    Reads ``Authorization: Bearer <token>``. No usable header is Forbidden
    (403); a token that does not verify is Unauthorized (401). On success
    the identity is attached to ``request.state.user``.

    Raises:
        AppError: FORBIDDEN, UNAUTHORIZED, or INTERNAL if verification blows up
    """
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        deps.audit.warn(ResourceType.AUTH, "Missing or malformed authorization header", request)
        raise AppError.of(ErrorKind.FORBIDDEN, "FORBIDDEN")

    token = header[len("Bearer "):].strip()
    if not token:
        deps.audit.warn(ResourceType.AUTH, "Empty bearer token", request)
        raise AppError.of(ErrorKind.FORBIDDEN, "FORBIDDEN")

    try:
        payload = deps.tokens.verify(token, TokenType.ACCESS)
    except Exception as e:
        logger.exception(f"[AUTH] Token verification error from {client_ip(request)}")
        deps.audit.error(ResourceType.AUTH, "Token verification error", request, {"cause": e})
        raise AppError.of(ErrorKind.INTERNAL, "Internal Server Error", e)

    if payload is None:
        deps.audit.warn(ResourceType.AUTH, "Invalid or expired token", request)
        raise AppError.of(ErrorKind.UNAUTHORIZED, "Unauthorized")

    identity = payload.identity()
    request.state.user = identity
    logger.debug(f"[AUTH] Authorized {identity.id} ({identity.role.value})")
    return identity


# =============================================================================
# ROLE CHECKS
# =============================================================================

def has_role(identity: Identity | None, *roles: Role) -> bool:
    """Role predicate, usable outside of dependency injection."""
    return identity is not None and identity.role in roles


def require_role(*roles: Role, resource_type: ResourceType = ResourceType.AUTH) -> Callable:
    """
    Factory for requiring one of ``roles`` after the gate.

    Usage:
        @router.get("/users")
        async def list_users(
            identity: Identity = Depends(require_role(Role.ADMIN, resource_type=ResourceType.USERS))
        ):
            ...
    """
    async def _require_role(
        request: Request,
        identity: Identity = Depends(authorize),
        deps: Dependencies = Depends(get_deps),
    ) -> Identity:
        if not has_role(identity, *roles):
            deps.audit.warn(resource_type, "Unauthorized attempt made", request, {"userRole": identity.role.value})
            raise AppError.of(ErrorKind.FORBIDDEN, "FORBIDDEN")
        return identity

    return _require_role
