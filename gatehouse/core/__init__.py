"""
Gatehouse Core Logic.

Business logic layer on top of the store layer.

Usage:
    from gatehouse.core import build_dependencies

    deps = build_dependencies(settings)
    result = await deps.auth.login(email, password, request)
"""

from .audit import AuditLogger, AuditSink, BufferedSink, DirectSink
from .auth import AuthenticationFlow
from .container import Dependencies, build_dependencies
from .errors import AppError, Err, ErrorKind, Ok, Result
from .log_query import build_log_query, parse_log_filter
from .logs import LogService
from .passwords import PasswordHasher
from .tokens import TokenService
from .users import UserDirectory

__all__ = [
    # Services
    "AuthenticationFlow",
    "LogService",
    "PasswordHasher",
    "TokenService",
    "UserDirectory",
    # Audit
    "AuditLogger",
    "AuditSink",
    "BufferedSink",
    "DirectSink",
    # Wiring
    "Dependencies",
    "build_dependencies",
    # Errors
    "AppError",
    "Err",
    "ErrorKind",
    "Ok",
    "Result",
    # Log queries
    "build_log_query",
    "parse_log_filter",
]
