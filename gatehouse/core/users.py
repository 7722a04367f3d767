"""
User Directory Service.

Listing, lookup and deletion of registered users. Records are only ever
returned in their public form (no password hash, no revision).

A user may read or delete their own record; an admin may read or delete
any record. A record that does not exist and a record the caller may not
see give the same Forbidden error, so ids cannot be probed.
"""

from typing import Any

from gatehouse.core.audit import AuditLogger
from gatehouse.core.errors import Err, ErrorKind, Ok, Result
from gatehouse.db.base import CredentialStore
from gatehouse.models import Identity, PublicUser, ResourceType


class UserDirectory:
    """User record operations behind the authorization gate."""

    def __init__(self, credentials: CredentialStore, audit: AuditLogger):
        self._credentials = credentials
        self._audit = audit

    async def list_users(self, request: Any | None = None) -> Result[list[dict[str, Any]]]:
        """All users as ``{id, email, role}``. Callers check the admin role first."""
        try:
            documents = await self._credentials.list_all()
        except Exception as e:
            self._audit.error(ResourceType.USERS, "Unable to fetch users from database", request, {"cause": e})
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        users = [PublicUser.from_document(doc).model_dump() for doc in documents]
        self._audit.info(ResourceType.USERS, "Users successfully fetched", request)
        return Ok(users)

    async def get_user(
        self,
        user_id: str | None,
        identity: Identity,
        request: Any | None = None,
    ) -> Result[dict[str, Any]]:
        if not user_id:
            self._audit.warn(ResourceType.USERS, "Request made with missing param", request)
            return Err(ErrorKind.VALIDATION, "Bad Request")

        if not _may_access(identity, user_id):
            self._audit.warn(
                ResourceType.USERS,
                "Attempted access to another user",
                request,
                {"resourceId": user_id},
            )
            return Err(ErrorKind.FORBIDDEN, "FORBIDDEN")

        try:
            document = await self._credentials.get(user_id)
        except Exception as e:
            self._audit.error(
                ResourceType.USERS,
                "Failed to fetch user by ID",
                request,
                {"resourceId": user_id, "cause": e},
            )
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        if document is None:
            self._audit.warn(ResourceType.USERS, "User does not exist", request, {"resourceId": user_id})
            return Err(ErrorKind.FORBIDDEN, "FORBIDDEN")

        self._audit.info(ResourceType.USERS, "User successfully fetched", request, {"resourceId": user_id})
        return Ok(PublicUser.from_document(document).model_dump())

    async def delete_user(
        self,
        user_id: str | None,
        identity: Identity,
        request: Any | None = None,
    ) -> Result[None]:
        if not user_id:
            self._audit.warn(ResourceType.USERS, "Missing ID param", request)
            return Err(ErrorKind.VALIDATION, "Bad Request")

        if not _may_access(identity, user_id):
            self._audit.warn(
                ResourceType.USERS,
                "Attempted delete of another user",
                request,
                {"resourceId": user_id},
            )
            return Err(ErrorKind.FORBIDDEN, "FORBIDDEN")

        try:
            deleted = await self._credentials.delete(user_id)
        except Exception as e:
            self._audit.error(
                ResourceType.USERS,
                "Failed to delete user",
                request,
                {"resourceId": user_id, "cause": e},
            )
            return Err(ErrorKind.INTERNAL, "Unhandled Exception", e)

        if not deleted:
            self._audit.warn(
                ResourceType.USERS,
                "Attempted delete on non-existent user",
                request,
                {"resourceId": user_id},
            )
            return Err(ErrorKind.FORBIDDEN, "FORBIDDEN")

        self._audit.info(ResourceType.USERS, "User successfully deleted", request, {"resourceId": user_id})
        return Ok(None)


def _may_access(identity: Identity, user_id: str) -> bool:
    return identity.is_admin or identity.id == user_id
