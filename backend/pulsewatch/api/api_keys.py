"""API key management. Master key only."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.api.deps import AuthContext, require_master
from pulsewatch.core.errors import not_found
from pulsewatch.db.session import get_db
from pulsewatch.models.api_key import ApiKey, generate_api_key, hash_api_key
from pulsewatch.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyCreateResponse,
    ApiKeyResponse,
    ApiKeyUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/keys", tags=["api-keys"])


async def _get_key(db: AsyncSession, key_id: UUID) -> ApiKey:
    result = await db.execute(select(ApiKey).where(ApiKey.id == key_id))
    key = result.scalar_one_or_none()
    if key is None:
        raise not_found("API key", details={"key_id": str(key_id)})
    return key


@router.post("", response_model=ApiKeyCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    data: ApiKeyCreate,
    _: Annotated[AuthContext, Depends(require_master)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a key. The plaintext key is only returned in this response."""
    raw_key = generate_api_key()
    key = ApiKey(
        key_hash=hash_api_key(raw_key),
        key_prefix=raw_key[:10],
        name=data.name,
        role=data.role.value,
        enabled=True,
    )
    db.add(key)
    await db.commit()
    await db.refresh(key)

    logger.info("Created API key %s (%s)", key.key_prefix, key.role)
    return ApiKeyCreateResponse(
        id=key.id,
        name=key.name,
        key_prefix=key.key_prefix,
        role=key.role,
        enabled=key.enabled,
        created_at=key.created_at,
        key=raw_key,
    )


@router.get("", response_model=list[ApiKeyResponse])
async def list_api_keys(
    _: Annotated[AuthContext, Depends(require_master)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(select(ApiKey).order_by(ApiKey.created_at.desc()))
    return result.scalars().all()


@router.patch("/{key_id}", response_model=ApiKeyResponse)
async def update_api_key(
    key_id: UUID,
    data: ApiKeyUpdate,
    _: Annotated[AuthContext, Depends(require_master)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Rename or enable/disable a key."""
    key = await _get_key(db, key_id)
    if data.name is not None:
        key.name = data.name
    if data.enabled is not None:
        key.enabled = data.enabled
    await db.commit()
    await db.refresh(key)
    return key


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_api_key(
    key_id: UUID,
    _: Annotated[AuthContext, Depends(require_master)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    key = await _get_key(db, key_id)
    await db.delete(key)
    await db.commit()
    logger.info("Deleted API key %s", key.key_prefix)
