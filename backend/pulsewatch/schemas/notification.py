"""Notification history schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationAuditResponse(BaseModel):
    id: UUID
    alert_id: UUID
    destination_id: UUID
    tenant_id: str
    transition_kind: str
    reason: str | None = None
    success: bool
    status_code: int | None = None
    error: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True
