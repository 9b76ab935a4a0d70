"""Notification destination model."""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pulsewatch.db.base import Base, TimestampMixin, UUIDMixin


class NotificationDestination(Base, UUIDMixin, TimestampMixin):
    """Webhook endpoint that receives alert transitions for one tenant."""

    __tablename__ = "notification_destinations"

    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    # Payload format: generic, slack, discord
    format: Mapped[str] = mapped_column(String(20), default="generic", nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_notification_destinations_tenant_enabled", "tenant_id", "enabled"),
    )
