"""
Service container.

Everything a request handler needs, built once per application from the
settings and held on ``app.state.deps``. Tests pass their own stores and
sink instead of patching module globals.
"""

import logging
from dataclasses import dataclass

from gatehouse.config import Settings
from gatehouse.core.audit import AuditLogger, AuditSink, BufferedSink, DirectSink
from gatehouse.core.auth import AuthenticationFlow
from gatehouse.core.logs import LogService
from gatehouse.core.passwords import PasswordHasher
from gatehouse.core.tokens import TokenService
from gatehouse.core.users import UserDirectory
from gatehouse.db import AuditStore, BackoffPolicy, CredentialStore, connect_with_backoff, create_stores

logger = logging.getLogger("gatehouse")


@dataclass
class Dependencies:
    settings: Settings
    credentials: CredentialStore
    audit_store: AuditStore
    tokens: TokenService
    hasher: PasswordHasher
    audit: AuditLogger
    auth: AuthenticationFlow
    users: UserDirectory
    logs: LogService

    async def start(self, policy: BackoffPolicy | None = None) -> None:
        """Connect both stores (with retries) and start the audit sink."""
        policy = policy or BackoffPolicy.from_settings(self.settings)
        await connect_with_backoff(self.credentials.connect, policy, label="credential store")
        await connect_with_backoff(self.audit_store.connect, policy, label="audit store")
        await self.audit.sink.start()

    async def stop(self) -> None:
        """Drain the audit sink, then release the stores."""
        await self.audit.sink.stop()
        await self.credentials.close()
        await self.audit_store.close()


def create_sink(settings: Settings, store: AuditStore) -> AuditSink:
    if settings.AUDIT_SINK == "buffered":
        return BufferedSink(
            store,
            max_size=settings.AUDIT_BUFFER_SIZE,
            batch_size=settings.AUDIT_BATCH_SIZE,
            flush_interval=settings.AUDIT_FLUSH_INTERVAL_SECONDS,
        )
    return DirectSink(store)


def build_dependencies(
    settings: Settings,
    credentials: CredentialStore | None = None,
    audit_store: AuditStore | None = None,
    sink: AuditSink | None = None,
) -> Dependencies:
    """
    Wire the services together.

    Raises:
        ConfigurationError: when required settings are missing
    """
    settings.validate_required()

    if credentials is None or audit_store is None:
        default_credentials, default_audit_store = create_stores(settings)
        credentials = credentials or default_credentials
        audit_store = audit_store or default_audit_store

    tokens = TokenService.from_settings(settings)
    hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    audit = AuditLogger(sink or create_sink(settings, audit_store), enabled=settings.AUDIT_ENABLED)

    logger.info(
        f"[STARTUP] Stores: credentials={credentials.name} audit={audit_store.name} "
        f"sink={type(audit.sink).__name__}"
    )

    return Dependencies(
        settings=settings,
        credentials=credentials,
        audit_store=audit_store,
        tokens=tokens,
        hasher=hasher,
        audit=audit,
        auth=AuthenticationFlow(credentials, hasher, tokens, audit),
        users=UserDirectory(credentials, audit),
        logs=LogService(audit_store, audit),
    )
