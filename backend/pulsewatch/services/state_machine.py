"""
Alert hysteresis state machine.

Turns a stream of breach / non-breach observations for one alert into
stable transitions:

    Normal --breach x enter_threshold--> Active      (emits "entered")
    Active --non-breach x exit_threshold--> Normal   (emits "recovered")
    Active --breach--> Active                        (emits "active" at most
                                                      once per repeat interval)

The functions here are pure. Callers load the alert, call observe(),
persist the returned state and only then hand the returned requests to
the notification queue.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from pulsewatch.services.conditions import evaluate_condition


MISSING_DATA_REASON = "missing_data"
NO_DATA_VALUE = "no data"


class TransitionKind(str, Enum):
    ENTERED = "entered"
    ACTIVE = "active"
    RECOVERED = "recovered"


class DisplayState(str, Enum):
    """Read-only projection of the runtime counters for dashboards."""

    NORMAL = "normal"
    BREACHING = "breaching"
    ALERTING = "alerting"
    RECOVERING = "recovering"


class AlertRule(Protocol):
    id: UUID
    tenant_id: str
    metric: str
    name: str | None
    condition: str
    threshold: str
    enter_threshold: int
    exit_threshold: int
    repeat_interval_seconds: int


@dataclass(frozen=True)
class AlertRuntimeState:
    consecutive_breaches: int = 0
    consecutive_recoveries: int = 0
    is_active: bool = False
    last_notified_at: datetime | None = None
    last_sample_at: datetime | None = None


@dataclass(frozen=True)
class NotificationRequest:
    """A transition to announce, built from the alert and the state after the sample."""

    tenant_id: str
    alert: dict[str, Any]
    value: str
    timestamp: datetime
    transition_kind: TransitionKind
    consecutive_breaches: int
    consecutive_recoveries: int
    reason: str | None = None

    @property
    def alert_id(self) -> str:
        return self.alert["id"]

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "tenant_id": self.tenant_id,
            "alert": dict(self.alert),
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
            "transition_kind": self.transition_kind.value,
            "consecutive_breaches": self.consecutive_breaches,
            "consecutive_recoveries": self.consecutive_recoveries,
        }
        if self.reason:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class Observation:
    state: AlertRuntimeState
    requests: list[NotificationRequest] = field(default_factory=list)
    breached: bool = False


def _enter_threshold(rule: AlertRule) -> int:
    return max(1, rule.enter_threshold or 1)


def _exit_threshold(rule: AlertRule) -> int:
    return max(1, rule.exit_threshold or 1)


def _repeat_due(rule: AlertRule, state: AlertRuntimeState, timestamp: datetime) -> bool:
    if state.last_notified_at is None:
        return True
    elapsed = (timestamp - state.last_notified_at).total_seconds()
    return elapsed >= rule.repeat_interval_seconds


def _build_request(
    rule: AlertRule,
    state: AlertRuntimeState,
    kind: TransitionKind,
    value: str,
    timestamp: datetime,
    reason: str | None,
) -> NotificationRequest:
    return NotificationRequest(
        tenant_id=rule.tenant_id,
        alert={
            "id": str(rule.id),
            "name": rule.name,
            "metric": rule.metric,
            "condition": rule.condition,
            "threshold": rule.threshold,
            "enter_threshold": _enter_threshold(rule),
            "exit_threshold": _exit_threshold(rule),
            "repeat_interval_seconds": rule.repeat_interval_seconds,
        },
        value=value,
        timestamp=timestamp,
        transition_kind=kind,
        consecutive_breaches=state.consecutive_breaches,
        consecutive_recoveries=state.consecutive_recoveries,
        reason=reason,
    )


def observe(
    rule: AlertRule,
    state: AlertRuntimeState,
    value: Any,
    timestamp: datetime,
    is_missing_data: bool = False,
) -> Observation:
    """Apply one observation to an alert's runtime state.

    Args:
        rule: The alert configuration (condition, threshold, hysteresis).
        state: Runtime state before this observation.
        value: Raw sample value; ignored when is_missing_data is True.
        timestamp: Sample time, or the sweep time for missing data.
        is_missing_data: Synthesized "no data" breach from the gap monitor.

    Returns:
        Observation with the new state and zero or more notification requests.
    """
    if is_missing_data:
        breached = True
        display_value = NO_DATA_VALUE
        reason = MISSING_DATA_REASON
    else:
        breached = evaluate_condition(value, rule.condition, rule.threshold)
        display_value = str(value)
        reason = None
        # Only real samples move last_sample_at, so the gap monitor keeps
        # seeing the gap until data resumes.
        state = replace(state, last_sample_at=timestamp)

    enter_at = _enter_threshold(rule)
    exit_at = _exit_threshold(rule)
    requests: list[NotificationRequest] = []

    if not state.is_active:
        if breached:
            breaches = state.consecutive_breaches + 1
            if breaches >= enter_at:
                state = replace(
                    state,
                    consecutive_breaches=breaches,
                    consecutive_recoveries=0,
                    is_active=True,
                    last_notified_at=timestamp,
                )
                requests.append(
                    _build_request(rule, state, TransitionKind.ENTERED, display_value, timestamp, reason)
                )
            else:
                state = replace(state, consecutive_breaches=breaches, consecutive_recoveries=0)
        else:
            state = replace(
                state,
                consecutive_breaches=0,
                consecutive_recoveries=state.consecutive_recoveries + 1,
            )
        return Observation(state=state, requests=requests, breached=breached)

    if breached:
        breaches = state.consecutive_breaches + 1
        recoveries = state.consecutive_recoveries
        # A stray breach keeps recovery progress; a full re-breach discards it.
        if recoveries > 0 and breaches >= enter_at:
            recoveries = 0
        state = replace(state, consecutive_breaches=breaches, consecutive_recoveries=recoveries)
        if _repeat_due(rule, state, timestamp):
            state = replace(state, last_notified_at=timestamp)
            requests.append(
                _build_request(rule, state, TransitionKind.ACTIVE, display_value, timestamp, reason)
            )
    else:
        recoveries = state.consecutive_recoveries + 1
        if recoveries >= exit_at:
            state = replace(
                state,
                consecutive_breaches=0,
                consecutive_recoveries=recoveries,
                is_active=False,
            )
            requests.append(
                _build_request(rule, state, TransitionKind.RECOVERED, display_value, timestamp, reason)
            )
        else:
            state = replace(state, consecutive_breaches=0, consecutive_recoveries=recoveries)

    return Observation(state=state, requests=requests, breached=breached)


def derive_display_state(rule: AlertRule, state: AlertRuntimeState) -> DisplayState:
    """Project runtime counters onto normal / breaching / alerting / recovering."""
    if not state.is_active:
        if state.consecutive_breaches > 0:
            return DisplayState.BREACHING
        return DisplayState.NORMAL
    if 0 < state.consecutive_recoveries < _exit_threshold(rule):
        return DisplayState.RECOVERING
    return DisplayState.ALERTING
