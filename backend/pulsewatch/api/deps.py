import secrets
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.core.config import settings
from pulsewatch.core.errors import forbidden, missing_tenant, unauthorized
from pulsewatch.db.session import get_db
from pulsewatch.models.api_key import ApiKey, hash_api_key


@dataclass(frozen=True)
class AuthContext:
    """Who is calling and on behalf of which tenant (X-App-Id)."""

    is_master: bool
    role: str
    tenant_id: str | None = None
    key_id: UUID | None = None

    def allows(self, permission: str) -> bool:
        return self.is_master or permission in self.role


async def get_auth_context(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_api_key: Annotated[str | None, Header()] = None,
    x_app_id: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """
    Authenticate the X-API-Key header.

    The master key works with or without a tenant; tenant keys require X-App-Id.
    """
    if not x_api_key:
        raise unauthorized("Missing API key")

    if secrets.compare_digest(x_api_key, settings.MASTER_KEY):
        return AuthContext(is_master=True, role="rw", tenant_id=x_app_id or None)

    if not x_app_id:
        raise missing_tenant()

    result = await db.execute(
        select(ApiKey).where(
            ApiKey.key_hash == hash_api_key(x_api_key),
            ApiKey.enabled == True,  # noqa: E712
        )
    )
    key = result.scalar_one_or_none()
    if key is None:
        raise unauthorized("Invalid or disabled API key")

    return AuthContext(is_master=False, role=key.role, tenant_id=x_app_id, key_id=key.id)


def require_permission(permission: str):
    """
    Create a dependency that requires 'r' or 'w' access to a tenant.

    Usage:
        @router.post(...)
        async def endpoint(
            auth: Annotated[AuthContext, Depends(require_permission("w"))],
        ):
            ...
    """
    async def check_permission(
        auth: Annotated[AuthContext, Depends(get_auth_context)],
    ) -> AuthContext:
        if not auth.allows(permission):
            raise forbidden(
                f"Insufficient permissions. Required: {permission}, Have: {auth.role}"
            )
        if not auth.tenant_id:
            raise missing_tenant()
        return auth

    return check_permission


async def require_master(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    if not auth.is_master:
        raise forbidden("Only the master key can manage API keys")
    return auth
