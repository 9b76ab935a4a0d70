"""Alert schemas for API request/response validation."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field, model_validator

from pulsewatch.core.config import settings
from pulsewatch.core.exceptions import AlertConfigError
from pulsewatch.services.conditions import OPERATORS, validate_rule
from pulsewatch.services.state_machine import DisplayState


def _check_condition(v: str) -> str:
    if v not in OPERATORS:
        raise ValueError(f"condition must be one of {', '.join(OPERATORS)}")
    return v


def _check_threshold(v: str | float | int) -> str:
    try:
        validate_rule(">", v)
    except AlertConfigError as e:
        raise ValueError(f"threshold {e.reason}") from e
    return str(v)


def _check_repeat_interval(v: int) -> int:
    if v < settings.MIN_REPEAT_INTERVAL_SECONDS:
        raise ValueError(f"repeat_interval_seconds must be at least {settings.MIN_REPEAT_INTERVAL_SECONDS}")
    return v


Condition = Annotated[str, AfterValidator(_check_condition)]
Threshold = Annotated[str | float | int, AfterValidator(_check_threshold)]
RepeatInterval = Annotated[int, AfterValidator(_check_repeat_interval)]

NULLABLE_ALERT_FIELDS = frozenset({"name", "expected_interval_seconds"})


class AlertCreate(BaseModel):
    """Schema for creating a new alert."""

    metric: str = Field(..., min_length=1, max_length=255)
    name: str | None = Field(None, max_length=255)
    condition: Condition
    threshold: Threshold
    enter_threshold: int = Field(1, ge=1)
    exit_threshold: int = Field(1, ge=1)
    repeat_interval_seconds: RepeatInterval = 3600
    treat_missing_as_breach: bool = False
    expected_interval_seconds: int | None = Field(None, ge=1)
    enabled: bool = True

    @model_validator(mode="after")
    def require_expected_interval(self):
        if self.treat_missing_as_breach and not self.expected_interval_seconds:
            raise ValueError("expected_interval_seconds is required when treat_missing_as_breach is set")
        return self


class AlertUpdate(BaseModel):
    """Schema for editing rule fields of an alert. Runtime counters are not editable."""

    name: str | None = Field(None, max_length=255)
    condition: Condition | None = None
    threshold: Threshold | None = None
    enter_threshold: int | None = Field(None, ge=1)
    exit_threshold: int | None = Field(None, ge=1)
    repeat_interval_seconds: RepeatInterval | None = None
    treat_missing_as_breach: bool | None = None
    expected_interval_seconds: int | None = Field(None, ge=1)
    enabled: bool | None = None

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        # Omitted fields stay unchanged; an explicit null may only clear nullable columns
        cleared = sorted(
            name for name in self.model_fields_set
            if name not in NULLABLE_ALERT_FIELDS and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class AlertResponse(BaseModel):
    """Alert configuration plus its runtime counters."""

    id: UUID
    tenant_id: str
    metric: str
    name: str | None = None
    condition: str
    threshold: str
    enter_threshold: int
    exit_threshold: int
    repeat_interval_seconds: int
    treat_missing_as_breach: bool
    expected_interval_seconds: int | None = None
    enabled: bool

    consecutive_breaches: int
    consecutive_recoveries: int
    is_active: bool
    last_notified_at: datetime | None = None
    last_sample_at: datetime | None = None
    display_state: DisplayState

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
