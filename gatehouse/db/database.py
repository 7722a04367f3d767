"""
Store Router - Selects the configured backend and connects to it.

Usage:
    from gatehouse.db.database import BackoffPolicy, connect_with_backoff, create_stores

    credentials, audit_store = create_stores(settings)
    policy = BackoffPolicy.from_settings(settings)
    await connect_with_backoff(credentials.connect, policy, label="users")

Configuration:
    DB_BACKEND selects 'memory', 'supabase' or 'couchdb'.
    DB_CONNECT_* control the startup retry schedule.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

from gatehouse.config import ConfigurationError, Settings
from gatehouse.db.backends import (
    CouchDBAuditStore,
    CouchDBConnection,
    CouchDBCredentialStore,
    MemoryAuditStore,
    MemoryCredentialStore,
    SupabaseAuditStore,
    SupabaseConnection,
    SupabaseCredentialStore,
)
from gatehouse.db.base import AuditStore, CredentialStore, StoreError

logger = logging.getLogger("gatehouse.db")


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Retry schedule for connecting to a store at startup.

    Delay before retry n (1-based) is ``base_delay * multiplier ** (n - 1)``
    plus a uniform jitter in ``[0, jitter)``. A multiplier of 1.0 gives a
    fixed delay.
    """
    max_attempts: int = 5
    base_delay: float = 3.0
    multiplier: float = 1.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.jitter < 0:
            raise ValueError("delays must not be negative")

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffPolicy":
        return cls(
            max_attempts=settings.DB_CONNECT_MAX_ATTEMPTS,
            base_delay=settings.DB_CONNECT_BASE_DELAY,
            multiplier=settings.DB_CONNECT_MULTIPLIER,
            jitter=settings.DB_CONNECT_JITTER,
        )

    def delays(self) -> Iterator[float]:
        """Delays between attempts (one fewer than ``max_attempts``)."""
        for n in range(self.max_attempts - 1):
            delay = self.base_delay * (self.multiplier ** n)
            if self.jitter:
                delay += random.uniform(0, self.jitter)
            yield delay


async def connect_with_backoff(
    connect: Callable[[], Awaitable[None]],
    policy: BackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "store",
) -> int:
    """
    Call ``connect`` until it succeeds or the policy is exhausted.

    Returns:
        The number of attempts it took.

    Raises:
        StoreError: after the last failed attempt
    """
    delays = policy.delays()
    attempt = 0

    while True:
        attempt += 1
        try:
            await connect()
        except StoreError as e:
            if attempt >= policy.max_attempts:
                logger.error(f"[DB] {label}: giving up after {attempt} attempts: {e}")
                raise StoreError(f"Could not connect to {label} after {attempt} attempts") from e

            delay = next(delays)
            logger.warning(
                f"[DB] {label}: connection attempt {attempt}/{policy.max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s"
            )
            await sleep(delay)
            continue

        logger.info(f"[DB] {label}: connected (attempt {attempt})")
        return attempt


def create_stores(settings: Settings) -> tuple[CredentialStore, AuditStore]:
    """
    Build the credential and audit stores for the configured backend.

    Both stores of a backend share one connection/client. Nothing is
    contacted here; call ``connect`` on each store at startup.
    """
    backend = settings.DB_BACKEND.lower()

    if backend == "memory":
        logger.info("[DB] Using in-memory backend")
        return MemoryCredentialStore(), MemoryAuditStore()

    if backend == "supabase":
        logger.info("[DB] Using Supabase backend")
        connection = SupabaseConnection(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return (
            SupabaseCredentialStore(connection, table=settings.USERS_TABLE),
            SupabaseAuditStore(connection, table=settings.AUDIT_LOG_TABLE),
        )

    if backend == "couchdb":
        logger.info(f"[DB] Using CouchDB backend at {settings.COUCHDB_URL}")
        connection = CouchDBConnection(
            settings.COUCHDB_URL,
            settings.COUCHDB_USER,
            settings.COUCHDB_PASSWORD,
        )
        return (
            CouchDBCredentialStore(connection, database=settings.USERS_TABLE),
            CouchDBAuditStore(connection, database=settings.AUDIT_LOG_TABLE),
        )

    raise ConfigurationError(f"Unknown DB_BACKEND: {settings.DB_BACKEND}")
