"""Append-only store for notification delivery history."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.notification_audit import NotificationAuditRecord


async def append_audit_record(
    db: AsyncSession,
    *,
    alert_id: str | uuid.UUID,
    destination_id: uuid.UUID,
    tenant_id: str,
    transition_kind: str,
    success: bool,
    status_code: int | None = None,
    error: str | None = None,
    reason: str | None = None,
) -> NotificationAuditRecord:
    """Insert one history row and commit it."""
    record = NotificationAuditRecord(
        alert_id=uuid.UUID(str(alert_id)),
        destination_id=destination_id,
        tenant_id=tenant_id,
        transition_kind=transition_kind,
        reason=reason,
        success=success,
        status_code=status_code,
        error=error,
    )
    db.add(record)
    await db.commit()
    return record


async def list_audit_records(
    db: AsyncSession,
    tenant_id: str,
    alert_id: uuid.UUID | None = None,
    limit: int = 100,
) -> list[NotificationAuditRecord]:
    """Return history for a tenant, newest first."""
    query = select(NotificationAuditRecord).where(NotificationAuditRecord.tenant_id == tenant_id)
    if alert_id is not None:
        query = query.where(NotificationAuditRecord.alert_id == alert_id)
    query = query.order_by(NotificationAuditRecord.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
