"""
Audit log API endpoints.

Filters: ``level``, ``resourceType``, ``from``, ``to`` (epoch ms). GET reads
them from the query string; POST also accepts a JSON body, with the query
string taking precedence.
"""

from fastapi import APIRouter, Depends, Request

from gatehouse.api.dependencies import get_deps, require_role
from gatehouse.api.errors import error_response
from gatehouse.api.routers.auth import read_json_body
from gatehouse.core.container import Dependencies
from gatehouse.core.errors import Err
from gatehouse.models import Identity, ResourceType, Role

router = APIRouter(tags=["logs"])


@router.api_route("/logs", methods=["GET", "POST"])
async def list_logs(
    request: Request,
    identity: Identity = Depends(require_role(Role.ADMIN, resource_type=ResourceType.LOGS)),
    deps: Dependencies = Depends(get_deps),
):
    """
    Query audit logs.

    Without filters every entry is returned, including entries written
    before newer fields existed.
    """
    filters = await read_json_body(request) if request.method == "POST" else {}
    filters.update(request.query_params)

    result = await deps.logs.list_logs(filters, request)
    if isinstance(result, Err):
        return error_response(result)

    return {"ok": True, "logs": result.value}
