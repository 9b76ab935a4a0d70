"""
Sample ingestion.

The API stores each sample and then hands it to the evaluation service
as a background task. The caller never waits on evaluation and never
sees its errors; they are logged here.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.metric import MetricSample
from pulsewatch.services.evaluation import AlertEvaluationService, evaluation_service

logger = logging.getLogger(__name__)

# Strong references so pending evaluations are not garbage collected
_pending: set[asyncio.Task] = set()


async def store_sample(
    db: AsyncSession,
    tenant_id: str,
    metric: str,
    value: str,
    timestamp: int,
) -> MetricSample:
    sample = MetricSample(tenant_id=tenant_id, metric=metric, value=value, timestamp=timestamp)
    db.add(sample)
    await db.commit()
    await db.refresh(sample)
    return sample


def _log_outcome(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Alert evaluation for %s failed: %s", task.get_name(), exc, exc_info=exc
        )


def schedule_evaluation(
    tenant_id: str,
    metric: str,
    value: str,
    timestamp: int,
    evaluator: AlertEvaluationService | None = None,
) -> asyncio.Task:
    """Start evaluation of a stored sample without awaiting it."""
    evaluator = evaluator or evaluation_service
    task = asyncio.create_task(
        evaluator.on_sample(tenant_id, metric, value, timestamp),
        name=f"evaluate:{tenant_id}/{metric}",
    )
    _pending.add(task)
    task.add_done_callback(_log_outcome)
    return task


async def wait_for_pending() -> None:
    """Wait for in-flight evaluations (used on shutdown)."""
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
