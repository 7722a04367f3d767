"""
In-memory store backends.

Good for local development and tests. Data is lost on restart.
"""

import asyncio
import copy
import logging
import uuid
from typing import Any

from gatehouse.db.base import AuditStore, CredentialStore, matches

logger = logging.getLogger("gatehouse.db")


class MemoryCredentialStore(CredentialStore):
    """Credential records kept in a dict keyed by id."""

    def __init__(self):
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    async def find_by_email(self, email: str) -> dict[str, Any] | None:
        async with self._lock:
            for record in self._records.values():
                if record.get("email") == email:
                    return copy.deepcopy(record)
            return None

    async def insert(self, document: dict[str, Any]) -> str:
        async with self._lock:
            user_id = document.get("id") or uuid.uuid4().hex
            self._records[user_id] = {**copy.deepcopy(document), "id": user_id}
            return user_id

    async def get(self, user_id: str) -> dict[str, Any] | None:
        async with self._lock:
            record = self._records.get(user_id)
            return copy.deepcopy(record) if record is not None else None

    async def list_all(self) -> list[dict[str, Any]]:
        async with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()]

    async def delete(self, user_id: str) -> bool:
        async with self._lock:
            return self._records.pop(user_id, None) is not None


class MemoryAuditStore(AuditStore):
    """Audit entries kept in insertion order."""

    def __init__(self):
        self._entries: list[dict[str, Any]] = []
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    async def insert(self, entry: dict[str, Any]) -> str | None:
        async with self._lock:
            entry_id = uuid.uuid4().hex
            self._entries.append({**copy.deepcopy(entry), "id": entry_id})
            return entry_id

    async def list_all(self) -> list[dict[str, Any]]:
        async with self._lock:
            return [copy.deepcopy(e) for e in self._entries]

    async def find(self, predicate: dict[str, Any]) -> list[dict[str, Any]]:
        async with self._lock:
            return [copy.deepcopy(e) for e in self._entries if matches(e, predicate)]
