"""
Gatehouse Models.

Exports the records, token payloads, request schemas and audit types.
"""

# Auth Models
from .auth import (
    MAX_PASSWORD_BYTES,
    CredentialRecord,
    Identity,
    LoginParams,
    PublicUser,
    RefreshParams,
    RegisterParams,
    Role,
    TokenPair,
    TokenPayload,
    TokenType,
)

# Audit Models
from .audit import (
    AuditLogEntry,
    LogFilter,
    LogLevel,
    ResourceType,
)

__all__ = [
    # Auth
    "MAX_PASSWORD_BYTES",
    "CredentialRecord",
    "Identity",
    "LoginParams",
    "PublicUser",
    "RefreshParams",
    "RegisterParams",
    "Role",
    "TokenPair",
    "TokenPayload",
    "TokenType",
    # Audit
    "AuditLogEntry",
    "LogFilter",
    "LogLevel",
    "ResourceType",
]
