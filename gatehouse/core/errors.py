"""
Error kinds and the result type returned by core operations.

Expected domain outcomes (bad input, duplicate email, bad credentials)
come back as ``Err`` values. Infrastructure faults raised by the stores
are caught by the core and turned into ``Err(ErrorKind.INTERNAL)``.

Usage:
    result = await auth_flow.register(email, password, password_confirm)
    if isinstance(result, Err):
        return error_response(result)
    user_id = result.value
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Error taxonomy shared by the core and the HTTP layer."""
    VALIDATION = "validation"  # malformed or missing input
    CONFLICT = "conflict"  # duplicate resource
    UNAUTHORIZED = "unauthorized"  # bad credential, invalid or expired token
    FORBIDDEN = "forbidden"  # no credential, insufficient role, hidden resource
    INTERNAL = "internal"  # unexpected store / crypto failure

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


# Conflict maps to 400, not 409
_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""
    value: T


@dataclass(frozen=True)
class Err:
    """
    Failed outcome.

    ``message`` is safe to show to the caller. ``cause`` is diagnostic
    detail for the audit channel only and never goes into a response.
    """
    kind: ErrorKind
    message: str
    cause: Any = None

    @property
    def status_code(self) -> int:
        return self.kind.status_code


Result = Union[Ok[T], Err]


class AppError(Exception):
    """
    Raised where a ``Result`` cannot be returned (FastAPI dependencies).

    Converted to a JSON response by the app-level exception handler.
    """

    def __init__(self, error: Err):
        super().__init__(error.message)
        self.error = error

    @classmethod
    def of(cls, kind: ErrorKind, message: str, cause: Any = None) -> "AppError":
        return cls(Err(kind, message, cause))
