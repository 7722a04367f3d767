"""
Log Listing Service.

An empty filter lists every stored entry (including legacy entries that
lack newer fields); any filter runs a predicate query instead.
"""

from collections.abc import Mapping
from typing import Any

from gatehouse.core.audit import AuditLogger
from gatehouse.core.errors import Err, ErrorKind, Ok, Result
from gatehouse.core.log_query import build_log_query, parse_log_filter
from gatehouse.db.base import AuditStore
from gatehouse.models import ResourceType


class LogService:
    """Audit log queries for admins."""

    def __init__(self, store: AuditStore, audit: AuditLogger):
        self._store = store
        self._audit = audit

    async def list_logs(
        self,
        raw_filters: Mapping[str, Any],
        request: Any | None = None,
    ) -> Result[list[dict[str, Any]]]:
        parsed = parse_log_filter(raw_filters)
        if isinstance(parsed, Err):
            self._audit.warn(ResourceType.LOGS, "Invalid query params for /logs", request, {"cause": parsed.cause})
            return parsed

        log_filter = parsed.value
        try:
            if log_filter.is_empty():
                logs = await self._store.list_all()
            else:
                logs = await self._store.find(build_log_query(log_filter))
        except Exception as e:
            self._audit.error(ResourceType.LOGS, "Failed to fetch logs", request, {"cause": e})
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        self._audit.info(ResourceType.LOGS, "Logs successfully fetched", request, {"count": len(logs)})
        return Ok(logs)
