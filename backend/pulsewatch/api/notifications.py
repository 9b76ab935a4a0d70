"""Notification history API."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.api.deps import AuthContext, require_permission
from pulsewatch.db.session import get_db
from pulsewatch.schemas.notification import NotificationAuditResponse
from pulsewatch.services.notification_audit import list_audit_records

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/history", response_model=list[NotificationAuditResponse])
async def get_notification_history(
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    alert_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
):
    """Delivery attempts for the tenant, newest first."""
    return await list_audit_records(db, auth.tenant_id, alert_id=alert_id, limit=limit)
