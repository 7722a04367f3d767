"""
Supabase store backends.

Tables (schema managed through SQL migrations, not here):
- users: id (uuid, default gen_random_uuid()), email (unique), password, role
- logs:  id (uuid), timestamp (bigint, epoch ms), level, "resourceType",
         message, data (jsonb) holding the rest of the extension map

The supabase client is synchronous; calls run in a worker thread so the
event loop is never blocked on I/O.
"""

import asyncio
import logging
import uuid
from typing import Any

from gatehouse.db.base import RANGE_OPERATORS, AuditStore, CredentialStore, StoreError

logger = logging.getLogger("gatehouse.db")

# Columns of the logs table; everything else goes to the jsonb column
_LOG_COLUMNS = ("timestamp", "level", "resourceType", "message")
_OPERATOR_METHODS = {"$eq": "eq", "$gte": "gte", "$lte": "lte", "$gt": "gt", "$lt": "lt"}


class SupabaseConnection:
    """Lazily created client shared by the user and log tables."""

    def __init__(self, url: str | None, key: str | None):
        self._url = url
        self._key = key
        self._client = None

    @property
    def client(self):
        if self._client is None:
            raise StoreError("Supabase client not connected")
        return self._client

    def connect(self, probe_table: str) -> None:
        """Create the client and run a trivial query to prove connectivity."""
        if not self._url or not self._key:
            raise StoreError("Supabase credentials not configured")

        try:
            from supabase import create_client
            from supabase.lib.client_options import ClientOptions

            # Use longer timeouts (seconds) to handle slow network conditions
            options = ClientOptions(postgrest_client_timeout=30)
            client = create_client(self._url, self._key, options=options)
            client.table(probe_table).select("id").limit(1).execute()
        except Exception as e:
            raise StoreError(f"Supabase not reachable: {e}") from e

        self._client = client
        logger.info("[SUPABASE] Client initialized successfully")


def _is_uuid(value: str) -> bool:
    """Ids are uuid columns; PostgREST rejects anything else with an error."""
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


async def _run(fn, *args):
    try:
        return await asyncio.to_thread(fn, *args)
    except StoreError:
        raise
    except Exception as e:
        raise StoreError(f"Supabase operation failed: {e}") from e


class SupabaseCredentialStore(CredentialStore):
    """Credential records in a Supabase table."""

    def __init__(self, connection: SupabaseConnection, table: str = "users"):
        self._conn = connection
        self._table = table

    @property
    def name(self) -> str:
        return "supabase"

    async def connect(self) -> None:
        await _run(self._conn.connect, self._table)
        logger.info(f"[SUPABASE] Connected - table: {self._table}")

    async def find_by_email(self, email: str) -> dict[str, Any] | None:
        def _query():
            return (
                self._conn.client.table(self._table)
                .select("*")
                .eq("email", email)
                .limit(1)
                .execute()
            )

        response = await _run(_query)
        return response.data[0] if response.data else None

    async def insert(self, document: dict[str, Any]) -> str:
        def _query():
            return self._conn.client.table(self._table).insert(document).execute()

        response = await _run(_query)
        if not response.data:
            raise StoreError(f"Insert into {self._table} returned no row")
        return str(response.data[0]["id"])

    async def get(self, user_id: str) -> dict[str, Any] | None:
        if not _is_uuid(user_id):
            return None

        def _query():
            return self._conn.client.table(self._table).select("*").eq("id", user_id).execute()

        response = await _run(_query)
        return response.data[0] if response.data else None

    async def list_all(self) -> list[dict[str, Any]]:
        def _query():
            return self._conn.client.table(self._table).select("*").execute()

        response = await _run(_query)
        return response.data or []

    async def delete(self, user_id: str) -> bool:
        if not _is_uuid(user_id):
            return False

        def _query():
            return self._conn.client.table(self._table).delete().eq("id", user_id).execute()

        response = await _run(_query)
        return bool(response.data)


class SupabaseAuditStore(AuditStore):
    """Audit entries in a Supabase table."""

    def __init__(self, connection: SupabaseConnection, table: str = "logs"):
        self._conn = connection
        self._table = table

    @property
    def name(self) -> str:
        return "supabase"

    async def connect(self) -> None:
        await _run(self._conn.connect, self._table)
        logger.info(f"[SUPABASE] Connected - table: {self._table}")

    async def insert(self, entry: dict[str, Any]) -> str | None:
        def _query():
            return self._conn.client.table(self._table).insert(_to_row(entry)).execute()

        response = await _run(_query)
        return str(response.data[0]["id"]) if response.data else None

    async def insert_many(self, entries: list[dict[str, Any]]) -> int:
        if not entries:
            return 0

        rows = [_to_row(entry) for entry in entries]

        def _query():
            return self._conn.client.table(self._table).insert(rows).execute()

        response = await _run(_query)
        return len(response.data or [])

    async def list_all(self) -> list[dict[str, Any]]:
        def _query():
            return self._conn.client.table(self._table).select("*").execute()

        response = await _run(_query)
        return [_from_row(row) for row in response.data or []]

    async def find(self, predicate: dict[str, Any]) -> list[dict[str, Any]]:
        def _query():
            query = self._conn.client.table(self._table).select("*")
            for column, condition in predicate.items():
                if column not in _LOG_COLUMNS:
                    raise StoreError(f"Cannot filter logs on non-column field: {column}")
                if isinstance(condition, dict):
                    for operator, bound in condition.items():
                        if operator not in RANGE_OPERATORS:
                            raise StoreError(f"Unsupported operator: {operator}")
                        query = getattr(query, _OPERATOR_METHODS[operator])(column, bound)
                else:
                    query = query.eq(column, condition)
            return query.order("timestamp").execute()

        response = await _run(_query)
        return [_from_row(row) for row in response.data or []]


def _to_row(entry: dict[str, Any]) -> dict[str, Any]:
    row = {column: entry.get(column) for column in _LOG_COLUMNS}
    row["data"] = {k: v for k, v in entry.items() if k not in _LOG_COLUMNS}
    return row


def _from_row(row: dict[str, Any]) -> dict[str, Any]:
    data = row.get("data") or {}
    document = {**data, "id": str(row.get("id"))}
    for column in _LOG_COLUMNS:
        if row.get(column) is not None:
            document[column] = row[column]
    return document
