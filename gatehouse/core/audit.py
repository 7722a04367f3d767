"""
Audit Logging Service.

Structured, append-only audit entries written fire-and-forget through a
pluggable sink. A failed write is reported on the local ``gatehouse.audit``
logger and never reaches the request that caused it.

Usage:
    audit = AuditLogger(DirectSink(audit_store))

    audit.info(ResourceType.LOGIN, "Login successful", request, {"userID": user.id})
    audit.error(ResourceType.USERS, "Unhandled Exception", request, {"cause": e})
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from gatehouse.db.base import AuditStore
from gatehouse.models import AuditLogEntry, LogLevel, ResourceType

logger = logging.getLogger("gatehouse.audit")

_LOCAL_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


# =============================================================================
# SINKS
# =============================================================================

class AuditSink(ABC):
    """Where finished entries go. ``submit`` must never block or raise."""

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def flush(self) -> None:
        """Wait until everything submitted so far has been attempted."""
        pass

    @abstractmethod
    def submit(self, entry: AuditLogEntry) -> None:
        pass


class DirectSink(AuditSink):
    """One background insert per entry."""

    def __init__(self, store: AuditStore):
        self._store = store
        self._pending: set[asyncio.Task] = set()

    def submit(self, entry: AuditLogEntry) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._write(entry))
        except RuntimeError:
            logger.warning(f"[AUDIT] No running event loop, entry dropped: {entry.message}")
            return

        # Keep a reference until done so the task is not garbage collected
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: AuditLogEntry) -> None:
        try:
            await self._store.insert(entry.to_dict())
        except Exception as e:
            logger.error(f"[AUDIT] Failed to persist entry ({entry.resource_type}): {e}")

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        await self.flush()


class BufferedSink(AuditSink):
    """
    Bounded queue drained in batches by a background task.

    The queue is flushed every ``flush_interval`` seconds, or sooner once
    ``batch_size`` entries are waiting. When the queue is full new entries
    are dropped with a warning.
    """

    def __init__(
        self,
        store: AuditStore,
        max_size: int = 1000,
        batch_size: int = 50,
        flush_interval: float = 1.0,
    ):
        self._store = store
        self._batch_size = max(1, batch_size)
        self._flush_interval = flush_interval
        self._queue: asyncio.Queue[AuditLogEntry] = asyncio.Queue(maxsize=max_size)
        self._wakeup = asyncio.Event()
        self._stopping = False
        self._worker: asyncio.Task | None = None
        self.dropped = 0

    async def start(self) -> None:
        if self._worker is None:
            self._stopping = False
            self._worker = asyncio.create_task(self._run())
            logger.info("[AUDIT] Buffered sink started")

    def submit(self, entry: AuditLogEntry) -> None:
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"[AUDIT] Buffer full, entry dropped ({self.dropped} total): {entry.message}")
            return

        if self._queue.qsize() >= self._batch_size:
            self._wakeup.set()

    async def _run(self) -> None:
        while not self._stopping:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._flush_interval)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()
            await self.flush()

    async def flush(self) -> None:
        while not self._queue.empty():
            batch = []
            while len(batch) < self._batch_size and not self._queue.empty():
                batch.append(self._queue.get_nowait())

            try:
                await self._store.insert_many([entry.to_dict() for entry in batch])
            except Exception as e:
                logger.error(f"[AUDIT] Failed to persist batch of {len(batch)} entries: {e}")

    async def stop(self) -> None:
        self._stopping = True
        self._wakeup.set()
        if self._worker is not None:
            await self._worker
            self._worker = None
        await self.flush()
        logger.info("[AUDIT] Buffered sink stopped")


# =============================================================================
# LOGGER
# =============================================================================

class AuditLogger:
    """
    Builds audit entries and hands them to a sink.

    Request context (method, path, params, query, ip, userAgent) is taken
    from the request when one is given. Fields the request does not have
    are left out rather than filled with placeholders.
    """

    def __init__(
        self,
        sink: AuditSink,
        enabled: bool = True,
        clock: Callable[[], float] | None = None,
    ):
        self._sink = sink
        self._enabled = enabled
        self._clock = clock or time.time

    @property
    def sink(self) -> AuditSink:
        return self._sink

    def write(
        self,
        level: LogLevel,
        resource_type: str | ResourceType,
        message: str,
        request: Any | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> AuditLogEntry:
        """
        Build an entry and submit it. Returns immediately.

        Request context wins over caller ``extra`` for the same key; the
        core fields (timestamp, level, resourceType, message) win over both.
        """
        if isinstance(resource_type, ResourceType):
            resource_type = resource_type.value

        fields = dict(extra or {})
        if request is not None:
            fields.update(request_context(request))
            user = getattr(getattr(request, "state", None), "user", None)
            if user is not None and "userID" not in fields:
                fields["userID"] = user.id
        if "cause" in fields:
            fields["cause"] = _json_safe(fields["cause"])

        entry = AuditLogEntry(
            timestamp=int(self._clock() * 1000),
            level=level,
            resource_type=resource_type,
            message=message,
            extra=fields,
        )

        # Always log locally
        logger.log(
            _LOCAL_LEVELS[level],
            f"[AUDIT] {resource_type} {level.value}: {message} "
            f"{fields.get('method', '-')} {fields.get('path', '-')} "
            f"user={fields.get('userID', '-')}",
        )

        if self._enabled:
            self._sink.submit(entry)
        return entry

    def info(self, resource_type, message, request=None, extra=None) -> AuditLogEntry:
        return self.write(LogLevel.INFO, resource_type, message, request, extra)

    def warn(self, resource_type, message, request=None, extra=None) -> AuditLogEntry:
        return self.write(LogLevel.WARN, resource_type, message, request, extra)

    def error(self, resource_type, message, request=None, extra=None) -> AuditLogEntry:
        return self.write(LogLevel.ERROR, resource_type, message, request, extra)

    async def flush(self) -> None:
        await self._sink.flush()


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

def client_ip(request: Any) -> str | None:
    """
    Get client IP, respecting proxy headers.

    Checks X-Forwarded-For first (set by load balancers), then X-Real-IP,
    then the socket peer.
    """
    headers = getattr(request, "headers", None)
    if headers is not None:
        forwarded = headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    client = getattr(request, "client", None)
    if client:
        return client.host
    return None


def request_context(request: Any) -> dict[str, Any]:
    """Audit fields available on ``request``."""
    context: dict[str, Any] = {}

    method = getattr(request, "method", None)
    if method:
        context["method"] = method

    url = getattr(request, "url", None)
    if url is not None:
        context["path"] = url.path

    params = dict(getattr(request, "path_params", None) or {})
    if params:
        context["params"] = params

    query = dict(getattr(request, "query_params", None) or {})
    if query:
        context["query"] = query

    ip = client_ip(request)
    if ip:
        context["ip"] = ip

    headers = getattr(request, "headers", None)
    user_agent = headers.get("User-Agent") if headers is not None else None
    if user_agent:
        context["userAgent"] = user_agent

    return context


def _json_safe(value: Any) -> Any:
    # Validation inputs can hold plaintext passwords, never copy them
    if isinstance(value, ValidationError):
        return {
            "type": "ValidationError",
            "message": f"{value.error_count()} validation error(s) for {value.title}",
            "errors": _json_safe(value.errors(include_url=False, include_input=False)),
        }
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
