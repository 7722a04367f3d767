"""
Audit Logging Models.

Audit entries are append-only: built once, persisted, never updated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


# =============================================================================
# ENUMS
# =============================================================================

class LogLevel(str, Enum):
    """Audit entry severity."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class ResourceType(str, Enum):
    """
    Resource-type tags used by this service.

    The stored field is a free-form string; these are only the tags the
    handlers here write.
    """
    AUTH = "AUTH"
    REGISTER = "REGISTER"
    LOGIN = "LOGIN"
    REFRESH = "REFRESH"
    USERS = "USERS"
    LOGS = "LOGS"


# =============================================================================
# DATACLASS MODELS (Internal use)
# =============================================================================

@dataclass(frozen=True)
class AuditLogEntry:
    """
    A single audit log event.

    ``extra`` is the open extension map: request context (method, path,
    params, query, ip, userAgent), acting user id, affected resource id,
    and an error ``cause`` for diagnostics.
    """
    timestamp: int  # epoch milliseconds
    level: LogLevel
    resource_type: str
    message: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored document shape."""
        return {
            **self.extra,
            "timestamp": self.timestamp,
            "level": self.level.value,
            "resourceType": self.resource_type,
            "message": self.message,
        }


# =============================================================================
# PYDANTIC MODELS (API)
# =============================================================================

class LogFilter(BaseModel):
    """
    Filters for the log listing. Every field is optional.

    An all-empty filter means "list everything", which is a different
    store call from a predicate query (see ``core.log_query``).
    """
    model_config = ConfigDict(populate_by_name=True)

    level: LogLevel | None = None
    resource_type: str | None = Field(default=None, alias="resourceType", min_length=1)
    from_: PositiveInt | None = Field(default=None, alias="from")
    to: PositiveInt | None = None

    def is_empty(self) -> bool:
        return (
            self.level is None
            and self.resource_type is None
            and self.from_ is None
            and self.to is None
        )
