"""
Environment configuration for gatehouse.

Authentication, role-gated access and audit logging service.
Startup fails fast when a required setting is missing.
"""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger("gatehouse")


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing."""
    pass


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # ==========================================================================
    # ENVIRONMENT DETECTION
    # ==========================================================================
    ENVIRONMENT: str = "local"  # 'local', 'development', 'production', 'test'
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # ==========================================================================
    # TOKEN SIGNING
    # ==========================================================================
    JWT_SIGNATURE: str | None = None  # Required
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_TTL_SECONDS: int = 15 * 60
    REFRESH_TOKEN_TTL_SECONDS: int = 60 * 60

    # ==========================================================================
    # PASSWORD HASHING
    # ==========================================================================
    BCRYPT_ROUNDS: int = 10

    # ==========================================================================
    # STORES
    # 'memory' keeps everything in process (local/test only)
    # ==========================================================================
    DB_BACKEND: str = "memory"  # 'memory', 'supabase', 'couchdb'
    USERS_TABLE: str = "users"
    AUDIT_LOG_TABLE: str = "logs"

    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    COUCHDB_URL: str = "http://db:5984"
    COUCHDB_USER: str | None = None
    COUCHDB_PASSWORD: str | None = None

    # Store connection backoff (startup only)
    DB_CONNECT_MAX_ATTEMPTS: int = 5
    DB_CONNECT_BASE_DELAY: float = 3.0  # seconds
    DB_CONNECT_MULTIPLIER: float = 1.0  # 1.0 = fixed delay
    DB_CONNECT_JITTER: float = 0.5  # seconds, uniform [0, jitter)

    # ==========================================================================
    # AUDIT LOGGING CONFIGURATION
    # ==========================================================================
    AUDIT_ENABLED: bool = True
    AUDIT_SINK: str = "direct"  # 'direct', 'buffered'
    AUDIT_BUFFER_SIZE: int = 1000
    AUDIT_BATCH_SIZE: int = 50
    AUDIT_FLUSH_INTERVAL_SECONDS: float = 1.0

    # ==========================================================================
    # CORS
    # ==========================================================================
    CORS_ORIGINS: str = ""  # Comma-separated list of allowed origins

    class Config:
        env_file = ".env"
        extra = "ignore"

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT in ("local", "test")

    @property
    def allowed_origins(self) -> list[str]:
        """Get allowed CORS origins based on environment."""
        if self.is_local:
            return [
                "http://localhost:3000",
                "http://localhost:5173",
                "http://127.0.0.1:3000",
            ]

        if not self.CORS_ORIGINS:
            return []

        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def validate_required(self) -> None:
        """
        Check the settings the process cannot start without.

        Raises:
            ConfigurationError: listing every missing setting
        """
        missing = []

        if not self.JWT_SIGNATURE:
            missing.append("JWT_SIGNATURE")

        backend = self.DB_BACKEND.lower()
        if backend == "supabase":
            if not self.SUPABASE_URL:
                missing.append("SUPABASE_URL")
            if not self.SUPABASE_SERVICE_ROLE_KEY:
                missing.append("SUPABASE_SERVICE_ROLE_KEY")
        elif backend == "couchdb":
            if not self.COUCHDB_USER:
                missing.append("COUCHDB_USER")
            if not self.COUCHDB_PASSWORD:
                missing.append("COUCHDB_PASSWORD")
        elif backend != "memory":
            raise ConfigurationError(f"Unknown DB_BACKEND: {self.DB_BACKEND}")

        if self.AUDIT_SINK not in ("direct", "buffered"):
            raise ConfigurationError(f"Unknown AUDIT_SINK: {self.AUDIT_SINK}")

        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    def log_config(self) -> None:
        """Log configuration on startup."""
        logger.info(f"[CONFIG] Environment: {self.ENVIRONMENT} (production: {self.is_production})")
        logger.info(f"[CONFIG] Host: {self.HOST}:{self.PORT}")
        logger.info(f"[CONFIG] Store backend: {self.DB_BACKEND}")
        logger.info(
            f"[CONFIG] Token lifetimes: access={self.ACCESS_TOKEN_TTL_SECONDS}s "
            f"refresh={self.REFRESH_TOKEN_TTL_SECONDS}s"
        )

        if self.DB_BACKEND == "memory" and not self.is_local:
            logger.warning("[CONFIG] WARNING: in-memory stores outside local environment.")
            logger.warning("[CONFIG] Users and audit logs are lost on restart.")

        logger.info(
            f"[CONFIG] Audit logging: {'enabled' if self.AUDIT_ENABLED else 'disabled'} "
            f"(sink={self.AUDIT_SINK})"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ==========================================================================
# LOGGING HELPERS
# ==========================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once per process."""
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )

    # Quiet down noisy third-party loggers
    for _logger_name in [
        "httpx", "httpcore", "httpcore.http2", "httpcore.connection",
        "urllib3", "hpack", "hpack.hpack", "hpack.table",
    ]:
        logging.getLogger(_logger_name).setLevel(logging.WARNING)
