"""
Authentication Models.

Credential records as stored, token payloads, and the request schemas
the authentication flow validates against.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    """Coarse authorization tier."""
    ADMIN = "admin"
    USER = "user"


class TokenType(str, Enum):
    """Token kinds. Same payload shape, different lifetimes."""
    ACCESS = "access"
    REFRESH = "refresh"


# =============================================================================
# STORED RECORDS
# =============================================================================

class CredentialRecord(BaseModel):
    """
    A registered principal as persisted by the credential store.

    ``password`` holds the bcrypt hash, never the plaintext. ``rev`` is the
    document revision for stores that need it on delete (CouchDB).
    """
    id: str = Field(min_length=1)
    rev: str | None = None
    email: str
    password: str
    role: Role = Role.USER

    def identity(self) -> "Identity":
        return Identity(id=self.id, email=self.email, role=self.role)


class PublicUser(BaseModel):
    """Entry of the user listing. Legacy documents may lack a role."""
    id: str
    email: str | None = None
    role: str | None = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "PublicUser":
        return cls(
            id=str(document.get("id")),
            email=document.get("email"),
            role=document.get("role"),
        )


# =============================================================================
# TOKENS
# =============================================================================

class Identity(BaseModel):
    """Who a token speaks for."""
    id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class TokenPayload(Identity):
    """Decoded token claims."""
    type: TokenType = TokenType.ACCESS
    iat: int
    exp: int

    def identity(self) -> Identity:
        return Identity(id=self.id, email=self.email, role=self.role)


class TokenPair(BaseModel):
    """Access and refresh token pair returned by login and refresh."""
    access_token: str = Field(serialization_alias="accessToken")
    refresh_token: str = Field(serialization_alias="refreshToken")


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class RegisterParams(BaseModel):
    """Registration input. Password and confirmation must match."""
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    password_confirm: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def _password_fits_hash(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterParams":
        if self.password != self.password_confirm:
            raise ValueError("password must be matching")
        return self


class LoginParams(BaseModel):
    """Login input."""
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshParams(BaseModel):
    """Token refresh input."""
    refresh_token: str = Field(min_length=1, alias="refreshToken")
