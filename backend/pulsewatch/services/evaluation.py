"""
Alert evaluation service.

Entry point of the engine for both real samples and synthesized
missing-data breaches. Every alert is evaluated under its own lock and in
its own transaction:

1. acquire the in-process lock for the alert
2. re-load the alert row FOR UPDATE (a deleted or disabled alert is a no-op)
3. run the state machine
4. commit the new runtime state
5. only after a successful commit, enqueue the notification requests

If the commit fails the transaction is rolled back and nothing is sent,
so the next sample re-derives the transition from the previous state.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.core.exceptions import StatePersistenceError
from pulsewatch.db.session import async_session_maker
from pulsewatch.models.alert import AlertConfig
from pulsewatch.services.notification_queue import notification_queue
from pulsewatch.services.state_machine import (
    AlertRuntimeState,
    NotificationRequest,
    Observation,
    TransitionKind,
    observe,
)
from pulsewatch.utils.timeutil import from_unix_seconds

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def enqueue(self, requests: list[NotificationRequest]) -> int: ...


class AlertLockRegistry:
    """One asyncio.Lock per alert id.

    Serialises read-modify-write of a single alert's runtime state while
    leaving different alerts fully independent.
    """

    def __init__(self):
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}

    def lock_for(self, alert_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(alert_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[alert_id] = lock
        return lock

    def discard(self, alert_id: uuid.UUID) -> None:
        lock = self._locks.get(alert_id)
        if lock is not None and not lock.locked():
            del self._locks[alert_id]

    def __len__(self) -> int:
        return len(self._locks)


async def list_enabled_alerts(db: AsyncSession, tenant_id: str, metric: str) -> list[AlertConfig]:
    result = await db.execute(
        select(AlertConfig)
        .where(AlertConfig.tenant_id == tenant_id)
        .where(AlertConfig.metric == metric)
        .where(AlertConfig.enabled == True)  # noqa: E712
    )
    return list(result.scalars().all())


async def persist_runtime_state(db: AsyncSession, alert: AlertConfig, state: AlertRuntimeState) -> None:
    """Write runtime counters for an alert and commit, or roll back and raise."""
    alert.apply_runtime_state(state)
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise StatePersistenceError(alert.id, type(e).__name__) from e


class AlertEvaluationService:
    """Runs the state machine for every enabled alert matching a sample."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        notifier: Notifier | None = None,
        locks: AlertLockRegistry | None = None,
    ):
        self._session_factory = session_factory or async_session_maker
        self._notifier = notifier or notification_queue
        self.locks = locks or AlertLockRegistry()

    async def on_sample(
        self,
        tenant_id: str,
        metric: str,
        value: str,
        timestamp_seconds: int,
    ) -> list[NotificationRequest]:
        """
        Evaluate a stored sample against every enabled alert on (tenant, metric).

        Never raises for a single alert's failure; the failure is logged and
        sibling alerts are still evaluated.

        Returns:
            Notification requests that were committed and enqueued
        """
        timestamp = from_unix_seconds(timestamp_seconds)

        async with self._session_factory() as db:
            alert_ids = [alert.id for alert in await list_enabled_alerts(db, tenant_id, metric)]

        if not alert_ids:
            return []

        outcomes = await asyncio.gather(
            *(self._evaluate_isolated(alert_id, value, timestamp, False) for alert_id in alert_ids)
        )
        return [request for requests in outcomes for request in requests]

    async def evaluate_missing(
        self,
        alert_id: uuid.UUID,
        now: datetime,
        still_missing: Callable[[AlertConfig, datetime], bool] | None = None,
    ) -> Observation | None:
        """Feed one synthesized "no data" breach for an alert through the state machine.

        Returns None when the breach was not applied: the alert is gone or
        disabled, or ``still_missing`` says a real sample arrived meanwhile.
        """
        return await self._evaluate(alert_id, None, now, True, still_missing)

    async def _evaluate_isolated(
        self,
        alert_id: uuid.UUID,
        value: Any,
        timestamp: datetime,
        is_missing_data: bool,
    ) -> list[NotificationRequest]:
        try:
            observation = await self._evaluate(alert_id, value, timestamp, is_missing_data)
            return observation.requests if observation else []
        except StatePersistenceError as e:
            logger.error("%s; notifications for this sample were not sent", e)
        except Exception:
            logger.exception("Error evaluating alert %s", alert_id)
        return []

    async def _evaluate(
        self,
        alert_id: uuid.UUID,
        value: Any,
        timestamp: datetime,
        is_missing_data: bool,
        still_missing: Callable[[AlertConfig, datetime], bool] | None = None,
    ) -> Observation | None:
        async with self.locks.lock_for(alert_id):
            async with self._session_factory() as db:
                result = await db.execute(
                    select(AlertConfig).where(AlertConfig.id == alert_id).with_for_update()
                )
                alert = result.scalar_one_or_none()
                if alert is None or not alert.enabled:
                    # Deleted or disabled while the sample was in flight
                    logger.debug("Alert %s no longer enabled, skipping evaluation", alert_id)
                    return None

                if still_missing is not None and not still_missing(alert, timestamp):
                    # A real sample arrived between the sweep query and this lock
                    return None

                observation = observe(
                    alert, alert.runtime_state(), value, timestamp, is_missing_data=is_missing_data
                )
                await persist_runtime_state(db, alert, observation.state)

        for request in observation.requests:
            if request.transition_kind == TransitionKind.ACTIVE:
                logger.debug(
                    "Alert %s still active on %s (%s)", alert_id, request.alert["metric"], request.value
                )
            else:
                logger.info(
                    "Alert %s %s on %s/%s value=%s%s",
                    alert_id,
                    request.transition_kind.value,
                    request.tenant_id,
                    request.alert["metric"],
                    request.value,
                    " (missing data)" if request.reason else "",
                )

        if observation.requests:
            self._notifier.enqueue(observation.requests)
        return observation


evaluation_service = AlertEvaluationService()
