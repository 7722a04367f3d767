"""
CouchDB store backends over the HTTP API (httpx).

Users and audit logs live in two databases. Predicates are passed through
as Mango selectors; design documents are never returned from listings.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from gatehouse.db.base import AuditStore, CredentialStore, StoreError

logger = logging.getLogger("gatehouse.db")

# Mango returns 25 documents unless told otherwise; larger results are paged
FIND_PAGE_SIZE = 1000


class CouchDBConnection:
    """One authenticated httpx client shared by both databases."""

    def __init__(
        self,
        url: str,
        user: str | None,
        password: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url.rstrip("/")
        self._auth = (user, password) if user else None
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._url,
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"CouchDB request failed: {method} {path}: {e}") from e

    async def ensure_database(self, database: str, index_fields: list[str]) -> None:
        """Check the server, create the database if missing and index it."""
        response = await self.request("GET", "/")
        if response.status_code != 200:
            raise StoreError(f"CouchDB not ready (status {response.status_code})")

        response = await self.request("PUT", f"/{database}")
        # 412 = already exists
        if response.status_code not in (201, 202, 412):
            raise StoreError(f"Cannot open database {database}: {response.status_code}")

        for field_name in index_fields:
            response = await self.request(
                "POST",
                f"/{database}/_index",
                json={"index": {"fields": [field_name]}, "name": f"{field_name}-index"},
            )
            if response.status_code not in (200, 201):
                logger.warning(f"[COUCHDB] Could not create index {database}.{field_name}: {response.status_code}")

        logger.info(f"[COUCHDB] Connected - database: {database}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _expect(response: httpx.Response, *statuses: int) -> dict[str, Any]:
    if response.status_code not in statuses:
        raise StoreError(
            f"Unexpected CouchDB response {response.status_code} for "
            f"{response.request.method} {response.request.url.path}"
        )
    return response.json()


def _without_design_docs(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        row["doc"]
        for row in rows
        if not row.get("id", "").startswith("_design") and row.get("doc") is not None
    ]


def _user_from_doc(doc: dict[str, Any]) -> dict[str, Any]:
    document = {k: v for k, v in doc.items() if not k.startswith("_")}
    document["id"] = doc["_id"]
    if "_rev" in doc:
        document["rev"] = doc["_rev"]
    return document


def _log_from_doc(doc: dict[str, Any]) -> dict[str, Any]:
    document = {k: v for k, v in doc.items() if not k.startswith("_")}
    document["id"] = doc["_id"]
    return document


class CouchDBCredentialStore(CredentialStore):
    """Credential records in a CouchDB database."""

    def __init__(self, connection: CouchDBConnection, database: str = "users"):
        self._conn = connection
        self._db = database

    @property
    def name(self) -> str:
        return "couchdb"

    async def connect(self) -> None:
        await self._conn.ensure_database(self._db, ["email"])

    async def close(self) -> None:
        await self._conn.close()

    async def find_by_email(self, email: str) -> dict[str, Any] | None:
        response = await self._conn.request(
            "POST",
            f"/{self._db}/_find",
            json={"selector": {"email": {"$eq": email}}, "limit": 1},
        )
        docs = _expect(response, 200).get("docs", [])
        return _user_from_doc(docs[0]) if docs else None

    async def insert(self, document: dict[str, Any]) -> str:
        response = await self._conn.request("POST", f"/{self._db}", json=document)
        return _expect(response, 201, 202)["id"]

    async def get(self, user_id: str) -> dict[str, Any] | None:
        # Underscore ids are CouchDB endpoints (_all_docs, _index), never users
        if not user_id or user_id.startswith("_"):
            return None
        response = await self._conn.request("GET", f"/{self._db}/{quote(user_id, safe='')}")
        if response.status_code == 404:
            return None
        return _user_from_doc(_expect(response, 200))

    async def list_all(self) -> list[dict[str, Any]]:
        response = await self._conn.request(
            "GET", f"/{self._db}/_all_docs", params={"include_docs": "true"}
        )
        rows = _expect(response, 200).get("rows", [])
        return [_user_from_doc(doc) for doc in _without_design_docs(rows)]

    async def delete(self, user_id: str) -> bool:
        document = await self.get(user_id)
        if document is None:
            return False

        response = await self._conn.request(
            "DELETE", f"/{self._db}/{quote(user_id, safe='')}", params={"rev": document["rev"]}
        )
        # Deleted concurrently between get and delete
        if response.status_code == 404:
            return False
        _expect(response, 200, 202)
        return True


class CouchDBAuditStore(AuditStore):
    """Audit entries in a CouchDB database."""

    def __init__(self, connection: CouchDBConnection, database: str = "logs"):
        self._conn = connection
        self._db = database

    @property
    def name(self) -> str:
        return "couchdb"

    async def connect(self) -> None:
        await self._conn.ensure_database(self._db, ["timestamp"])

    async def close(self) -> None:
        await self._conn.close()

    async def insert(self, entry: dict[str, Any]) -> str | None:
        response = await self._conn.request("POST", f"/{self._db}", json=entry)
        return _expect(response, 201, 202).get("id")

    async def insert_many(self, entries: list[dict[str, Any]]) -> int:
        if not entries:
            return 0
        response = await self._conn.request(
            "POST", f"/{self._db}/_bulk_docs", json={"docs": entries}
        )
        results = _expect(response, 201, 202)
        return sum(1 for result in results if result.get("ok"))

    async def list_all(self) -> list[dict[str, Any]]:
        response = await self._conn.request(
            "GET", f"/{self._db}/_all_docs", params={"include_docs": "true"}
        )
        rows = _expect(response, 200).get("rows", [])
        return [_log_from_doc(doc) for doc in _without_design_docs(rows)]

    async def find(self, predicate: dict[str, Any]) -> list[dict[str, Any]]:
        """Run a Mango query, following bookmarks until a short page."""
        docs: list[dict[str, Any]] = []
        bookmark = None
        while True:
            body: dict[str, Any] = {"selector": predicate, "limit": FIND_PAGE_SIZE}
            if bookmark:
                body["bookmark"] = bookmark
            response = await self._conn.request("POST", f"/{self._db}/_find", json=body)
            page = _expect(response, 200)
            batch = page.get("docs", [])
            docs.extend(batch)
            bookmark = page.get("bookmark")
            if len(batch) < FIND_PAGE_SIZE or not bookmark:
                break
        return [_log_from_doc(doc) for doc in docs]
