"""
Abstract base classes for the credential and audit stores.

Each backend implements these with its own storage-specific syntax.
Documents cross this boundary as plain dicts with an ``id`` key (and
``rev`` where the store versions documents).

Query predicates use a small selector syntax:
    {"level": "ERROR"}                               equality
    {"timestamp": {"$gte": 100, "$lte": 200}}        inclusive range
Fields not mentioned are unconstrained. A document lacking a mentioned
field never matches.
"""

from abc import ABC, abstractmethod
from typing import Any

RANGE_OPERATORS = ("$eq", "$gte", "$lte", "$gt", "$lt")


class StoreError(Exception):
    """Store unreachable, or it answered in a way the backend cannot use."""
    pass


class CredentialStore(ABC):
    """
    User credential records.

    Uniqueness of email is NOT guaranteed here unless the concrete store
    enforces it; the registration flow checks before inserting.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'memory', 'supabase', 'couchdb')."""
        pass

    async def connect(self) -> None:
        """Establish the connection. Raises StoreError when unavailable."""
        pass

    async def close(self) -> None:
        """Release connections."""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> dict[str, Any] | None:
        """Exact (case-sensitive) email match, or None."""
        pass

    @abstractmethod
    async def insert(self, document: dict[str, Any]) -> str:
        """Insert a new record and return its store-assigned id."""
        pass

    @abstractmethod
    async def get(self, user_id: str) -> dict[str, Any] | None:
        """Get a record by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_all(self) -> list[dict[str, Any]]:
        """All user records (no design/index documents)."""
        pass

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        pass


class AuditStore(ABC):
    """Append-only audit log storage."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def insert(self, entry: dict[str, Any]) -> str | None:
        """Append one entry. Returns the new id if the store assigns one."""
        pass

    async def insert_many(self, entries: list[dict[str, Any]]) -> int:
        """Append a batch. Returns the number of entries written."""
        count = 0
        for entry in entries:
            await self.insert(entry)
            count += 1
        return count

    @abstractmethod
    async def list_all(self) -> list[dict[str, Any]]:
        """
        Every entry, including legacy entries missing newer fields.
        """
        pass

    @abstractmethod
    async def find(self, predicate: dict[str, Any]) -> list[dict[str, Any]]:
        """Entries matching a non-empty selector predicate."""
        pass


def matches(document: dict[str, Any], predicate: dict[str, Any]) -> bool:
    """Evaluate a selector predicate against a document in memory."""
    for field_name, condition in predicate.items():
        if field_name not in document:
            return False
        value = document[field_name]

        if isinstance(condition, dict) and condition and all(k in RANGE_OPERATORS for k in condition):
            for operator, bound in condition.items():
                if not _compare(value, operator, bound):
                    return False
        elif value != condition:
            return False

    return True


def _compare(value: Any, operator: str, bound: Any) -> bool:
    try:
        if operator == "$eq":
            return value == bound
        if operator == "$gte":
            return value >= bound
        if operator == "$lte":
            return value <= bound
        if operator == "$gt":
            return value > bound
        if operator == "$lt":
            return value < bound
    except TypeError:
        # Mixed types (e.g. legacy ISO string timestamps) never match
        return False
    return False
