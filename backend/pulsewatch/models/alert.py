from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pulsewatch.db.base import Base, TimestampMixin, UUIDMixin
from pulsewatch.services.state_machine import AlertRuntimeState, DisplayState, derive_display_state
from pulsewatch.utils.timeutil import ensure_utc


class AlertConfig(Base, UUIDMixin, TimestampMixin):
    """A threshold rule on one (tenant, metric) pair plus its hysteresis counters.

    Rule fields are edited by users through the API. Runtime fields
    (consecutive_*, is_active, last_*_at) are written only by the
    evaluation service while it holds the per-alert lock.
    """

    __tablename__ = "alerts"

    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    metric: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Rule
    condition: Mapped[str] = mapped_column(String(2), nullable=False)
    threshold: Mapped[str] = mapped_column(String(64), nullable=False)
    """Kept as the submitted string; parsed as float at evaluation time"""

    # Hysteresis and cadence
    enter_threshold: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    exit_threshold: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    repeat_interval_seconds: Mapped[int] = mapped_column(Integer, default=3600, nullable=False)

    # Gap detection
    treat_missing_as_breach: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expected_interval_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Runtime state
    consecutive_breaches: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    consecutive_recoveries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_sample_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_alerts_tenant_metric_enabled", "tenant_id", "metric", "enabled"),
    )

    def runtime_state(self) -> AlertRuntimeState:
        return AlertRuntimeState(
            consecutive_breaches=self.consecutive_breaches or 0,
            consecutive_recoveries=self.consecutive_recoveries or 0,
            is_active=bool(self.is_active),
            last_notified_at=ensure_utc(self.last_notified_at),
            last_sample_at=ensure_utc(self.last_sample_at),
        )

    def apply_runtime_state(self, state: AlertRuntimeState) -> None:
        self.consecutive_breaches = state.consecutive_breaches
        self.consecutive_recoveries = state.consecutive_recoveries
        self.is_active = state.is_active
        self.last_notified_at = state.last_notified_at
        self.last_sample_at = state.last_sample_at

    @property
    def display_state(self) -> DisplayState:
        return derive_display_state(self, self.runtime_state())
