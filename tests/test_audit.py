"""
Tests for the audit logger and its sinks.
"""

import asyncio
import logging

from starlette.requests import Request

from gatehouse.core.audit import AuditLogger, BufferedSink, DirectSink, client_ip, request_context
from gatehouse.db.backends import MemoryAuditStore
from gatehouse.models import Identity, LogLevel, ResourceType, Role

from .conftest import RecordingSink


def make_request(
    method: str = "GET",
    path: str = "/users/abc",
    query: bytes = b"",
    headers: dict[str, str] | None = None,
    path_params: dict | None = None,
    client: tuple[str, int] | None = ("127.0.0.1", 50000),
) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("testserver", 80),
        "path": path,
        "root_path": "",
        "query_string": query,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
        "path_params": path_params or {},
    }
    return Request(scope)


class FailingAuditStore(MemoryAuditStore):
    async def insert(self, entry):
        raise RuntimeError("disk full")

    async def insert_many(self, entries):
        raise RuntimeError("disk full")


class CountingAuditStore(MemoryAuditStore):
    def __init__(self):
        super().__init__()
        self.batches: list[int] = []

    async def insert_many(self, entries):
        self.batches.append(len(entries))
        return await super().insert_many(entries)


class TestAuditEntry:
    """Test suite for building audit entries."""

    def test_timestamp_is_epoch_milliseconds(self, sink: RecordingSink):
        audit = AuditLogger(sink, clock=lambda: 1_700_000_000.25)

        entry = audit.info(ResourceType.USERS, "done")

        assert entry.timestamp == 1_700_000_000_250
        assert sink.entries == [entry]

    def test_request_context_is_merged(self, audit: AuditLogger):
        request = make_request(
            query=b"level=ERROR",
            headers={"User-Agent": "pytest", "X-Forwarded-For": "10.0.0.1, 10.0.0.2"},
            path_params={"id": "abc"},
        )

        entry = audit.warn(ResourceType.USERS, "checked", request, {"resourceId": "abc"})

        assert entry.extra == {
            "resourceId": "abc",
            "method": "GET",
            "path": "/users/abc",
            "params": {"id": "abc"},
            "query": {"level": "ERROR"},
            "ip": "10.0.0.1",
            "userAgent": "pytest",
        }

    def test_absent_fields_are_omitted(self, audit: AuditLogger):
        entry = audit.info(ResourceType.LOGIN, "no request")
        assert entry.extra == {}

        request = make_request(path="/ping", client=None)
        context = audit.info(ResourceType.LOGIN, "bare request", request).extra
        assert context == {"method": "GET", "path": "/ping"}

    def test_user_id_taken_from_authorized_request(self, audit: AuditLogger):
        request = make_request()
        request.state.user = Identity(id="u-9", email="a@example.com", role=Role.USER)

        assert audit.info(ResourceType.USERS, "x", request).extra["userID"] == "u-9"
        assert audit.info(ResourceType.USERS, "x", request, {"userID": "other"}).extra["userID"] == "other"

    def test_core_fields_win_over_extra(self, audit: AuditLogger):
        entry = audit.info(ResourceType.LOGIN, "real", extra={"resourceType": "USERS", "message": "fake"})

        document = entry.to_dict()
        assert document["resourceType"] == "LOGIN"
        assert document["message"] == "real"
        assert document["level"] == "INFO"

    def test_cause_is_json_safe(self, audit: AuditLogger):
        entry = audit.error(ResourceType.USERS, "boom", extra={"cause": ValueError("bad value")})

        assert entry.extra["cause"] == {"type": "ValueError", "message": "bad value"}

    def test_levels(self, audit: AuditLogger):
        assert audit.info("X", "m").level == LogLevel.INFO
        assert audit.warn("X", "m").level == LogLevel.WARN
        assert audit.error("X", "m").level == LogLevel.ERROR

    def test_disabled_logger_does_not_submit(self, sink: RecordingSink):
        audit = AuditLogger(sink, enabled=False)

        audit.info(ResourceType.USERS, "quiet")

        assert sink.entries == []


class TestRequestContext:
    """Test suite for request field extraction."""

    def test_client_ip_prefers_proxy_headers(self):
        assert client_ip(make_request(headers={"X-Real-IP": "10.1.1.1"})) == "10.1.1.1"
        assert client_ip(make_request()) == "127.0.0.1"
        assert client_ip(make_request(client=None)) is None

    def test_empty_params_and_query_left_out(self):
        context = request_context(make_request())

        assert "params" not in context
        assert "query" not in context


class TestDirectSink:
    """Test suite for the per-entry sink."""

    async def test_entry_is_persisted(self):
        store = MemoryAuditStore()
        audit = AuditLogger(DirectSink(store))

        audit.info(ResourceType.LOGIN, "persist me", extra={"userID": "u-1"})
        await audit.flush()

        [stored] = await store.list_all()
        assert stored["message"] == "persist me"
        assert stored["resourceType"] == "LOGIN"
        assert stored["userID"] == "u-1"

    async def test_store_failure_is_contained(self, caplog):
        audit = AuditLogger(DirectSink(FailingAuditStore()))

        with caplog.at_level(logging.ERROR, logger="gatehouse.audit"):
            entry = audit.error(ResourceType.USERS, "will not persist")
            await audit.flush()

        assert entry.message == "will not persist"
        assert "Failed to persist entry" in caplog.text

    def test_no_event_loop_drops_entry(self, caplog):
        audit = AuditLogger(DirectSink(MemoryAuditStore()))

        with caplog.at_level(logging.WARNING, logger="gatehouse.audit"):
            audit.info(ResourceType.USERS, "dropped")

        assert "entry dropped" in caplog.text


class TestBufferedSink:
    """Test suite for the batching sink."""

    async def test_entries_flushed_on_stop(self):
        store = CountingAuditStore()
        sink = BufferedSink(store, batch_size=2, flush_interval=60)
        audit = AuditLogger(sink)
        await sink.start()

        for n in range(5):
            audit.info(ResourceType.LOGS, f"entry {n}")
        await sink.stop()

        stored = await store.list_all()
        assert [e["message"] for e in stored] == [f"entry {n}" for n in range(5)]
        assert all(size <= 2 for size in store.batches)
        assert sum(store.batches) == 5

    async def test_overflow_is_dropped(self):
        store = MemoryAuditStore()
        sink = BufferedSink(store, max_size=2, flush_interval=60)
        audit = AuditLogger(sink)

        for n in range(3):
            audit.info(ResourceType.LOGS, f"entry {n}")
        await sink.flush()

        assert sink.dropped == 1
        assert len(await store.list_all()) == 2

    async def test_store_failure_is_contained(self, caplog):
        sink = BufferedSink(FailingAuditStore(), flush_interval=60)
        audit = AuditLogger(sink)

        with caplog.at_level(logging.ERROR, logger="gatehouse.audit"):
            audit.info(ResourceType.LOGS, "lost")
            await sink.flush()

        assert "Failed to persist batch" in caplog.text

    async def test_worker_flushes_on_interval(self):
        interval = 0.01
        store = MemoryAuditStore()
        sink = BufferedSink(store, flush_interval=interval)
        await sink.start()

        AuditLogger(sink).info(ResourceType.LOGS, "timed")
        for _ in range(100):
            if await store.list_all():
                break
            await asyncio.sleep(interval)
        await sink.stop()

        assert [e["message"] for e in await store.list_all()] == ["timed"]

