"""
Tests for the CouchDB backends against a mocked HTTP transport.
"""

import json

import httpx
import pytest

from gatehouse.db.backends import CouchDBAuditStore, CouchDBConnection, CouchDBCredentialStore
from gatehouse.db.backends.couchdb import FIND_PAGE_SIZE
from gatehouse.db.base import StoreError


class FakeCouch:
    """Records requests and answers from a route table."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes.get((request.method, request.url.path), httpx.Response(404, json={"error": "not_found"}))

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def connection_for(fake: FakeCouch) -> CouchDBConnection:
    return CouchDBConnection("http://couch:5984", "admin", "pw", transport=httpx.MockTransport(fake))


class TestCouchDBCredentialStore:
    """Test suite for the users database."""

    async def test_find_by_email_uses_selector(self):
        fake = FakeCouch({
            ("POST", "/users/_find"): httpx.Response(
                200, json={"docs": [{"_id": "u1", "_rev": "1-a", "email": "a@example.com", "password": "h", "role": "user"}]}
            ),
        })
        store = CouchDBCredentialStore(connection_for(fake))

        document = await store.find_by_email("a@example.com")

        assert fake.body() == {"selector": {"email": {"$eq": "a@example.com"}}, "limit": 1}
        assert document == {"id": "u1", "rev": "1-a", "email": "a@example.com", "password": "h", "role": "user"}

    async def test_get_missing_returns_none(self):
        store = CouchDBCredentialStore(connection_for(FakeCouch({})))

        assert await store.get("nope") is None

    async def test_list_all_skips_design_documents(self):
        fake = FakeCouch({
            ("GET", "/users/_all_docs"): httpx.Response(200, json={"rows": [
                {"id": "_design/idx", "doc": {"_id": "_design/idx", "language": "query"}},
                {"id": "u1", "doc": {"_id": "u1", "_rev": "1-a", "email": "a@example.com", "role": "user"}},
            ]}),
        })
        store = CouchDBCredentialStore(connection_for(fake))

        users = await store.list_all()

        assert [u["id"] for u in users] == ["u1"]
        assert fake.requests[0].url.params["include_docs"] == "true"

    async def test_reserved_ids_are_missing(self):
        fake = FakeCouch({
            ("GET", "/users/_all_docs"): httpx.Response(200, json={"total_rows": 0, "rows": []}),
        })
        store = CouchDBCredentialStore(connection_for(fake))

        assert await store.get("_all_docs") is None
        assert await store.delete("_index") is False
        assert fake.requests == []

    async def test_delete_sends_revision(self):
        fake = FakeCouch({
            ("GET", "/users/u1"): httpx.Response(200, json={"_id": "u1", "_rev": "3-c", "email": "a@example.com"}),
            ("DELETE", "/users/u1"): httpx.Response(200, json={"ok": True}),
        })
        store = CouchDBCredentialStore(connection_for(fake))

        assert await store.delete("u1") is True
        assert fake.requests[-1].url.params["rev"] == "3-c"

    async def test_delete_missing_returns_false(self):
        store = CouchDBCredentialStore(connection_for(FakeCouch({})))

        assert await store.delete("nope") is False

    async def test_unexpected_status_is_store_error(self):
        fake = FakeCouch({("POST", "/users"): httpx.Response(500, json={"error": "boom"})})
        store = CouchDBCredentialStore(connection_for(fake))

        with pytest.raises(StoreError):
            await store.insert({"email": "a@example.com"})

    async def test_transport_failure_is_store_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        connection = CouchDBConnection("http://couch:5984", None, None, transport=httpx.MockTransport(refuse))
        store = CouchDBCredentialStore(connection)

        with pytest.raises(StoreError):
            await store.connect()
        await store.close()

    async def test_connect_accepts_existing_database(self):
        fake = FakeCouch({
            ("GET", "/"): httpx.Response(200, json={"couchdb": "Welcome"}),
            ("PUT", "/users"): httpx.Response(412, json={"error": "file_exists"}),
            ("POST", "/users/_index"): httpx.Response(200, json={"result": "exists"}),
        })
        store = CouchDBCredentialStore(connection_for(fake))

        await store.connect()

        assert fake.body() == {"index": {"fields": ["email"]}, "name": "email-index"}


class TestCouchDBAuditStore:
    """Test suite for the logs database."""

    async def test_find_passes_predicate_as_selector(self):
        fake = FakeCouch({
            ("POST", "/logs/_find"): httpx.Response(200, json={"docs": [
                {"_id": "l1", "_rev": "1-a", "level": "ERROR", "timestamp": 150, "message": "b"},
            ]}),
        })
        store = CouchDBAuditStore(connection_for(fake))
        predicate = {"level": "ERROR", "timestamp": {"$gte": 100, "$lte": 200}}

        logs = await store.find(predicate)

        assert fake.body()["selector"] == predicate
        assert logs == [{"id": "l1", "level": "ERROR", "timestamp": 150, "message": "b"}]

    async def test_insert_many_uses_bulk_docs(self):
        fake = FakeCouch({
            ("POST", "/logs/_bulk_docs"): httpx.Response(201, json=[{"ok": True, "id": "a"}, {"ok": True, "id": "b"}]),
        })
        store = CouchDBAuditStore(connection_for(fake))

        written = await store.insert_many([{"message": "a"}, {"message": "b"}])

        assert written == 2
        assert fake.body() == {"docs": [{"message": "a"}, {"message": "b"}]}

    async def test_find_follows_bookmarks(self):
        pages = {
            None: {"docs": [{"_id": f"a{i}", "level": "INFO"} for i in range(FIND_PAGE_SIZE)], "bookmark": "p2"},
            "p2": {"docs": [{"_id": "b0", "level": "INFO"}], "bookmark": "p3"},
        }
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            return httpx.Response(200, json=pages[body.get("bookmark")])

        connection = CouchDBConnection("http://couch:5984", None, None, transport=httpx.MockTransport(handler))
        store = CouchDBAuditStore(connection)

        logs = await store.find({"level": "INFO"})

        assert len(logs) == FIND_PAGE_SIZE + 1
        assert logs[-1]["id"] == "b0"
        assert [b.get("bookmark") for b in bodies] == [None, "p2"]
