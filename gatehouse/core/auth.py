"""
Authentication Flow.

Registration, login and token refresh against the credential store.
Every outcome, success or failure, is written to the audit log.
"""

from typing import Any

from pydantic import ValidationError

from gatehouse.core.audit import AuditLogger
from gatehouse.core.errors import Err, ErrorKind, Ok, Result
from gatehouse.core.passwords import PasswordHasher
from gatehouse.core.tokens import TokenService
from gatehouse.db.base import CredentialStore
from gatehouse.models import (
    CredentialRecord,
    LoginParams,
    RefreshParams,
    RegisterParams,
    ResourceType,
    Role,
    TokenPair,
    TokenType,
)


class AuthenticationFlow:
    """
    Credential checks and token issuance.

    Usage:
        flow = AuthenticationFlow(credentials, PasswordHasher(), tokens, audit)
        result = await flow.login("a@example.com", "secret", request)
        if isinstance(result, Ok):
            pair = result.value
    """

    def __init__(
        self,
        credentials: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        audit: AuditLogger,
    ):
        self._credentials = credentials
        self._hasher = hasher
        self._tokens = tokens
        self._audit = audit

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    async def register(
        self,
        email: Any,
        password: Any,
        password_confirm: Any,
        request: Any | None = None,
    ) -> Result[str]:
        """
        Create a user with the ``user`` role and return its id.

        The existence check and the insert are two separate store calls.
        Two concurrent registrations for the same email can both pass the
        check; only a unique index in the store prevents the duplicate.
        """
        try:
            params = RegisterParams(email=email, password=password, password_confirm=password_confirm)
        except ValidationError as e:
            self._audit.warn(ResourceType.REGISTER, "Register Validation failed", request, {"cause": e})
            return Err(ErrorKind.VALIDATION, "Validation failed", e)

        try:
            existing = await self._credentials.find_by_email(params.email)
            if existing is not None:
                self._audit.warn(ResourceType.REGISTER, "User already exists", request)
                return Err(ErrorKind.CONFLICT, "User already exists")

            hashed = self._hasher.hash(params.password)
            user_id = await self._credentials.insert({
                "email": params.email,
                "password": hashed,
                "role": Role.USER.value,
            })
        except Exception as e:
            self._audit.error(
                ResourceType.REGISTER,
                "Unhandled Exception: failed to register user",
                request,
                {"cause": e},
            )
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        self._audit.info(
            ResourceType.REGISTER,
            "User successfully created",
            request,
            {"userID": user_id, "resourceId": user_id},
        )
        return Ok(user_id)

    # =========================================================================
    # LOGIN
    # =========================================================================

    async def login(self, email: Any, password: Any, request: Any | None = None) -> Result[TokenPair]:
        """
        Check credentials and issue an access/refresh token pair.

        Unknown email and wrong password give the same Unauthorized error.
        The hash comparison is skipped for an unknown email, so response
        time still tells the two apart.
        """
        try:
            LoginParams(email=email, password=password)
        except ValidationError as e:
            self._audit.warn(ResourceType.LOGIN, "Invalid Request Body", request, {"cause": e})
            return Err(ErrorKind.VALIDATION, "Invalid request body", e)

        # Look up the address as given; stored emails are case-sensitive
        try:
            document = await self._credentials.find_by_email(email)
        except Exception as e:
            self._audit.error(ResourceType.LOGIN, "Failed to look up user", request, {"email": email, "cause": e})
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        if document is None:
            self._audit.warn(ResourceType.LOGIN, "Attempted login of non-existent user", request, {"email": email})
            return Err(ErrorKind.UNAUTHORIZED, "Unauthorized")

        try:
            record = CredentialRecord.model_validate(document)
        except ValidationError as e:
            self._audit.error(ResourceType.LOGIN, "Fetched document is invalid", request, {"email": email, "cause": e})
            return Err(ErrorKind.INTERNAL, "FORBIDDEN", e)

        if not self._hasher.verify(password, record.password):
            self._audit.warn(
                ResourceType.LOGIN,
                "Attempted login with invalid credentials",
                request,
                {"email": email},
            )
            return Err(ErrorKind.UNAUTHORIZED, "Unauthorized")

        pair = self._tokens.issue_pair(record.identity())
        self._audit.info(
            ResourceType.LOGIN,
            "User login successful",
            request,
            {"userID": record.id, "userRole": record.role.value},
        )
        return Ok(pair)

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self, refresh_token: Any, request: Any | None = None) -> Result[TokenPair]:
        """
        Exchange a valid refresh token for a new token pair.

        The user is re-read from the store: a deleted user cannot refresh,
        and the new tokens carry the current role.
        """
        try:
            params = RefreshParams.model_validate({"refreshToken": refresh_token})
        except ValidationError as e:
            self._audit.warn(ResourceType.REFRESH, "Invalid Request Body", request, {"cause": e})
            return Err(ErrorKind.VALIDATION, "Invalid request body", e)

        payload = self._tokens.verify(params.refresh_token, TokenType.REFRESH)
        if payload is None:
            self._audit.warn(ResourceType.REFRESH, "Invalid refresh token", request)
            return Err(ErrorKind.UNAUTHORIZED, "Unauthorized")

        try:
            document = await self._credentials.get(payload.id)
        except Exception as e:
            self._audit.error(ResourceType.REFRESH, "Failed to look up user", request, {"userID": payload.id, "cause": e})
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        if document is None:
            self._audit.warn(ResourceType.REFRESH, "Refresh for non-existent user", request, {"userID": payload.id})
            return Err(ErrorKind.UNAUTHORIZED, "Unauthorized")

        try:
            record = CredentialRecord.model_validate(document)
        except ValidationError as e:
            self._audit.error(
                ResourceType.REFRESH,
                "Fetched document is invalid",
                request,
                {"userID": payload.id, "cause": e},
            )
            return Err(ErrorKind.INTERNAL, "FORBIDDEN", e)

        pair = self._tokens.issue_pair(record.identity())
        self._audit.info(
            ResourceType.REFRESH,
            "Tokens refreshed",
            request,
            {"userID": record.id, "userRole": record.role.value},
        )
        return Ok(pair)
