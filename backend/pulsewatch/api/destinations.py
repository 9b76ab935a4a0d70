"""
Destinations API.

Manage the webhook endpoints that receive a tenant's alert notifications.
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.api.deps import AuthContext, require_permission
from pulsewatch.core.errors import conflict, not_found, validation_error
from pulsewatch.db.session import get_db
from pulsewatch.models.destination import NotificationDestination
from pulsewatch.schemas.destination import (
    DestinationCreate,
    DestinationResponse,
    DestinationUpdate,
)
from pulsewatch.services.url_safety import is_safe_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/destinations", tags=["destinations"])


async def _get_tenant_destination(
    db: AsyncSession, tenant_id: str, destination_id: UUID
) -> NotificationDestination:
    result = await db.execute(
        select(NotificationDestination).where(
            NotificationDestination.id == destination_id,
            NotificationDestination.tenant_id == tenant_id,
        )
    )
    destination = result.scalar_one_or_none()
    if destination is None:
        raise not_found("Destination", details={"destination_id": str(destination_id)})
    return destination


async def _ensure_unique_name(
    db: AsyncSession, tenant_id: str, name: str, exclude_id: UUID | None = None
) -> None:
    query = select(NotificationDestination).where(
        NotificationDestination.tenant_id == tenant_id,
        NotificationDestination.name == name,
    )
    if exclude_id is not None:
        query = query.where(NotificationDestination.id != exclude_id)
    existing = await db.execute(query)
    if existing.scalar_one_or_none():
        raise conflict("A destination with this name already exists")


def _ensure_safe_url(url: str) -> None:
    is_safe, reason = is_safe_url(url)
    if not is_safe:
        raise validation_error(f"Destination URL rejected: {reason}", details={"url": url})


@router.get("", response_model=list[DestinationResponse])
async def list_destinations(
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List all destinations of the tenant."""
    result = await db.execute(
        select(NotificationDestination)
        .where(NotificationDestination.tenant_id == auth.tenant_id)
        .order_by(NotificationDestination.name)
    )
    return result.scalars().all()


@router.post("", response_model=DestinationResponse, status_code=status.HTTP_201_CREATED)
async def create_destination(
    data: DestinationCreate,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a new destination."""
    await _ensure_unique_name(db, auth.tenant_id, data.name)
    _ensure_safe_url(str(data.url))

    destination = NotificationDestination(
        tenant_id=auth.tenant_id,
        name=data.name,
        url=str(data.url),
        format=data.format.value,
        enabled=data.enabled,
    )
    db.add(destination)
    await db.commit()
    await db.refresh(destination)

    logger.info("Created %s destination %s for tenant %s", destination.format, destination.id, auth.tenant_id)
    return destination


@router.patch("/{destination_id}", response_model=DestinationResponse)
async def update_destination(
    destination_id: UUID,
    data: DestinationUpdate,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update a destination."""
    destination = await _get_tenant_destination(db, auth.tenant_id, destination_id)

    if data.name is not None and data.name != destination.name:
        await _ensure_unique_name(db, auth.tenant_id, data.name, exclude_id=destination.id)
        destination.name = data.name
    if data.url is not None:
        _ensure_safe_url(str(data.url))
        destination.url = str(data.url)
    if data.format is not None:
        destination.format = data.format.value
    if data.enabled is not None:
        destination.enabled = data.enabled

    await db.commit()
    await db.refresh(destination)
    return destination


@router.delete("/{destination_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_destination(
    destination_id: UUID,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a destination. Its delivery history is kept."""
    destination = await _get_tenant_destination(db, auth.tenant_id, destination_id)
    await db.delete(destination)
    await db.commit()
