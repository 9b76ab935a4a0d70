"""Raw sample retention."""

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.models.metric import MetricSample
from pulsewatch.utils.timeutil import now_seconds


async def cleanup_old_samples(db: AsyncSession, retention_days: int) -> int:
    """
    Delete metric samples older than the retention window.

    Returns the number of deleted rows. The caller commits.
    """
    cutoff = now_seconds() - retention_days * 86400

    result = await db.execute(
        delete(MetricSample).where(MetricSample.timestamp < cutoff)
    )

    return result.rowcount or 0
