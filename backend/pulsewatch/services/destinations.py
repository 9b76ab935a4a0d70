"""Read access to a tenant's notification destinations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.destination import NotificationDestination


async def list_enabled_destinations(db: AsyncSession, tenant_id: str) -> list[NotificationDestination]:
    result = await db.execute(
        select(NotificationDestination)
        .where(NotificationDestination.tenant_id == tenant_id)
        .where(NotificationDestination.enabled == True)  # noqa: E712
        .order_by(NotificationDestination.name)
    )
    return list(result.scalars().all())
