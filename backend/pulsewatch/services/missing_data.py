"""
Missing-data monitor.

Periodically looks for alerts that opted into gap detection and whose
metric has stopped reporting, and feeds one synthesized "no data" breach
per alert per sweep into the evaluation service.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.db.session import async_session_maker
from pulsewatch.models.alert import AlertConfig
from pulsewatch.services.evaluation import AlertEvaluationService, evaluation_service
from pulsewatch.utils.timeutil import ensure_utc

logger = logging.getLogger(__name__)

# Number of expected intervals that must elapse before data counts as missing
GAP_INTERVALS = 2


def is_gap(alert: AlertConfig, now: datetime) -> bool:
    """True when at least GAP_INTERVALS expected intervals passed since the last real sample.

    Alerts that never received data are never considered missing.
    """
    if not alert.treat_missing_as_breach or not alert.expected_interval_seconds:
        return False
    last_sample_at = ensure_utc(alert.last_sample_at)
    if last_sample_at is None:
        return False
    elapsed = (ensure_utc(now) - last_sample_at).total_seconds()
    return elapsed / alert.expected_interval_seconds >= GAP_INTERVALS


class MissingDataMonitor:
    """Sweeps opted-in alerts for reporting gaps."""

    def __init__(
        self,
        evaluator: AlertEvaluationService | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self._evaluator = evaluator or evaluation_service
        self._session_factory = session_factory or async_session_maker
        self._sweeping = False

    async def _candidates(self) -> list[AlertConfig]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AlertConfig)
                .where(AlertConfig.enabled == True)  # noqa: E712
                .where(AlertConfig.treat_missing_as_breach == True)  # noqa: E712
                .where(AlertConfig.expected_interval_seconds.is_not(None))
                .where(AlertConfig.last_sample_at.is_not(None))
            )
            return list(result.scalars().all())

    async def sweep(self, now: datetime | None = None) -> int:
        """
        Run one sweep tick.

        Each alert with a gap contributes exactly one synthetic breach,
        however many intervals have actually elapsed. A sweep that starts
        while another is still running is skipped.

        Returns:
            Number of alerts that received a synthetic breach
        """
        if self._sweeping:
            logger.debug("Missing-data sweep still running, skipping tick")
            return 0

        self._sweeping = True
        try:
            now = now or datetime.now(UTC)
            synthesized = 0
            for alert in await self._candidates():
                if not is_gap(alert, now):
                    continue
                try:
                    observation = await self._evaluator.evaluate_missing(alert.id, now, still_missing=is_gap)
                    if observation is not None:
                        synthesized += 1
                except Exception:
                    logger.exception("Missing-data evaluation failed for alert %s", alert.id)

            if synthesized:
                logger.info("Missing-data sweep synthesized %s breaches", synthesized)
            return synthesized
        finally:
            self._sweeping = False


missing_data_monitor = MissingDataMonitor()
