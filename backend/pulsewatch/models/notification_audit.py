"""Append-only history of notification delivery attempts."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from pulsewatch.db.base import Base, UUIDMixin


class NotificationAuditRecord(Base, UUIDMixin):
    """One row per delivery attempt.

    alert_id and destination_id are plain columns rather than foreign keys
    so that history survives deletion of the alert or destination. Rows
    are never updated; cleanup is left to an external retention policy.
    """

    __tablename__ = "notification_audit_records"

    alert_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    destination_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    transition_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    """entered, active or recovered"""
    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_notification_audit_alert_time", "alert_id", "created_at"),
        Index("ix_notification_audit_tenant_time", "tenant_id", "created_at"),
    )
