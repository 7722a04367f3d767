"""
Store backends for gatehouse.

Available backends:
- Memory*: in-process dicts (local development and tests)
- Supabase*: users and logs tables in Supabase
- CouchDB*: users and logs databases over the CouchDB HTTP API
"""

from .couchdb import CouchDBAuditStore, CouchDBConnection, CouchDBCredentialStore
from .memory import MemoryAuditStore, MemoryCredentialStore
from .supabase import SupabaseAuditStore, SupabaseConnection, SupabaseCredentialStore

__all__ = [
    "CouchDBAuditStore",
    "CouchDBConnection",
    "CouchDBCredentialStore",
    "MemoryAuditStore",
    "MemoryCredentialStore",
    "SupabaseAuditStore",
    "SupabaseConnection",
    "SupabaseCredentialStore",
]
