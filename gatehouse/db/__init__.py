"""
Gatehouse Store Layer.

Provides access to:
- CredentialStore: registered users (find by email, insert, get, list, delete)
- AuditStore: append-only audit log entries (insert, list, predicate find)

Usage:
    from gatehouse.db import create_stores

    credentials, audit_store = create_stores(settings)
    record = await credentials.find_by_email("a@example.com")
"""

from .base import AuditStore, CredentialStore, StoreError, matches
from .database import BackoffPolicy, connect_with_backoff, create_stores

__all__ = [
    "AuditStore",
    "BackoffPolicy",
    "CredentialStore",
    "StoreError",
    "connect_with_backoff",
    "create_stores",
    "matches",
]
