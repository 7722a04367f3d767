"""
Token Service.

Signs and verifies identity tokens (PyJWT, HS256 by default). Tokens are
stateless: validity is signature plus expiry, nothing is stored.
"""

import logging
import time
from collections.abc import Callable, Mapping
from datetime import timedelta
from typing import Any

import jwt
from pydantic import ValidationError

from gatehouse.config import ConfigurationError, Settings
from gatehouse.models import Identity, TokenPair, TokenPayload, TokenType

logger = logging.getLogger("gatehouse.auth")


class TokenService:
    """
    Token issuance and validation.

    Example:
        tokens = TokenService.from_settings(settings)
        pair = tokens.issue_pair(record.identity())
        payload = tokens.verify(pair.access_token, TokenType.ACCESS)
    """

    def __init__(
        self,
        secret: str | None,
        algorithm: str = "HS256",
        access_ttl: int | timedelta = 15 * 60,
        refresh_ttl: int | timedelta = 60 * 60,
        clock: Callable[[], float] | None = None,
    ):
        # No secret is a startup failure, never a per-request one
        if not secret:
            raise ConfigurationError("JWT_SIGNATURE not configured")

        self._secret = secret
        self._algorithm = algorithm
        self._access_ttl = _seconds(access_ttl)
        self._refresh_ttl = _seconds(refresh_ttl)
        self._clock = clock or time.time

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.JWT_SIGNATURE,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=settings.ACCESS_TOKEN_TTL_SECONDS,
            refresh_ttl=settings.REFRESH_TOKEN_TTL_SECONDS,
        )

    @property
    def access_ttl(self) -> int:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> int:
        return self._refresh_ttl

    # =========================================================================
    # ISSUANCE
    # =========================================================================

    def issue(self, payload: Mapping[str, Any], ttl: int | timedelta) -> str:
        """
        Sign ``payload`` with an ``iat``/``exp`` window of ``ttl``.

        Deterministic for the same secret, payload and clock reading.
        """
        now = int(self._clock())
        claims = {
            **payload,
            "iat": now,
            "exp": now + _seconds(ttl),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def issue_access(self, identity: Identity) -> str:
        return self.issue(_claims(identity, TokenType.ACCESS), self._access_ttl)

    def issue_refresh(self, identity: Identity) -> str:
        return self.issue(_claims(identity, TokenType.REFRESH), self._refresh_ttl)

    def issue_pair(self, identity: Identity) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access(identity),
            refresh_token=self.issue_refresh(identity),
        )

    # =========================================================================
    # VERIFICATION
    # =========================================================================

    def verify(self, token: str, token_type: TokenType | None = None) -> TokenPayload | None:
        """
        Check signature and expiry and decode the payload.

        Returns None for any invalid token. The reason is only logged:
        callers must not be able to tell an expired token from a forged one.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            return self._reject("expired")
        except jwt.InvalidSignatureError:
            return self._reject("bad_signature")
        except jwt.DecodeError:
            return self._reject("malformed")
        except jwt.InvalidTokenError as e:
            return self._reject("invalid", e)

        try:
            payload = TokenPayload.model_validate(claims)
        except ValidationError:
            return self._reject("bad_claims")

        if token_type is not None and payload.type != token_type:
            return self._reject("wrong_type")

        return payload

    def _reject(self, cause: str, error: Exception | None = None) -> None:
        if error is not None:
            logger.warning(f"[AUTH] Token rejected: {cause} ({error})")
        else:
            logger.warning(f"[AUTH] Token rejected: {cause}")
        return None


def _claims(identity: Identity, token_type: TokenType) -> dict[str, Any]:
    return {
        **identity.model_dump(mode="json"),
        "type": token_type.value,
    }


def _seconds(ttl: int | timedelta) -> int:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)
