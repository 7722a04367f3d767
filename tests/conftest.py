"""
Pytest configuration and fixtures for testing.

This module provides:
- Settings for an isolated test process (in-memory stores, low bcrypt cost)
- A recording audit sink to assert on audit entries
- Test client for the FastAPI app
- User and token fixtures
"""

import asyncio
import os
from typing import Any, Generator

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"

from fastapi.testclient import TestClient

from gatehouse.api.server import create_app
from gatehouse.config import Settings
from gatehouse.core.audit import AuditLogger, AuditSink
from gatehouse.core.auth import AuthenticationFlow
from gatehouse.core.container import Dependencies, build_dependencies
from gatehouse.core.passwords import PasswordHasher
from gatehouse.core.tokens import TokenService
from gatehouse.db.backends import MemoryAuditStore, MemoryCredentialStore
from gatehouse.models import AuditLogEntry, Identity, LogLevel, Role

TEST_SECRET = "test-signature-0123456789abcdef0123456789abcdef"
TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# TEST DOUBLES
# =============================================================================


class RecordingSink(AuditSink):
    """Keeps submitted entries in memory instead of persisting them."""

    def __init__(self):
        self.entries: list[AuditLogEntry] = []

    def submit(self, entry: AuditLogEntry) -> None:
        self.entries.append(entry)

    def find(self, resource_type: str | None = None, level: LogLevel | None = None) -> list[AuditLogEntry]:
        return [
            e for e in self.entries
            if (resource_type is None or e.resource_type == resource_type)
            and (level is None or e.level == level)
        ]

    @property
    def last(self) -> AuditLogEntry:
        return self.entries[-1]


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
        JWT_SIGNATURE=TEST_SECRET,
        BCRYPT_ROUNDS=4,
        DB_BACKEND="memory",
        DB_CONNECT_MAX_ATTEMPTS=1,
        DB_CONNECT_JITTER=0.0,
        AUDIT_SINK="direct",
    )


@pytest.fixture
def credential_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def audit_store() -> MemoryAuditStore:
    return MemoryAuditStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def audit(sink: RecordingSink) -> AuditLogger:
    return AuditLogger(sink)


@pytest.fixture
def auth_flow(credential_store, hasher, tokens, audit) -> AuthenticationFlow:
    return AuthenticationFlow(credential_store, hasher, tokens, audit)


def create_user(
    store: MemoryCredentialStore,
    hasher: PasswordHasher,
    email: str,
    password: str = TEST_PASSWORD,
    role: Role = Role.USER,
) -> str:
    """Insert a user straight into the store (bypasses registration)."""
    document: dict[str, Any] = {"email": email, "password": hasher.hash(password), "role": role.value}
    return asyncio.run(store.insert(document))


def bearer(tokens: TokenService, user_id: str, email: str, role: Role) -> dict[str, str]:
    """Authorization header carrying an access token for the given identity."""
    token = tokens.issue_access(Identity(id=user_id, email=email, role=role))
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================


@pytest.fixture
def deps(settings, credential_store, audit_store, sink) -> Dependencies:
    return build_dependencies(settings, credentials=credential_store, audit_store=audit_store, sink=sink)


@pytest.fixture
def client(settings, deps) -> Generator[TestClient, None, None]:
    """Create a synchronous test client for the FastAPI app."""
    with TestClient(create_app(settings, deps)) as test_client:
        yield test_client


# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest.fixture
def admin_id(credential_store, hasher) -> str:
    return create_user(credential_store, hasher, "admin@example.com", role=Role.ADMIN)


@pytest.fixture
def user_id(credential_store, hasher) -> str:
    return create_user(credential_store, hasher, "user@example.com")


@pytest.fixture
def admin_headers(deps, admin_id) -> dict[str, str]:
    return bearer(deps.tokens, admin_id, "admin@example.com", Role.ADMIN)


@pytest.fixture
def user_headers(deps, user_id) -> dict[str, str]:
    return bearer(deps.tokens, user_id, "user@example.com", Role.USER)
