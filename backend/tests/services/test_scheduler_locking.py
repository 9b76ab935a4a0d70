"""Tests for scheduler distributed locking and scheduled jobs."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

from pulsewatch.models.metric import MetricSample
from pulsewatch.services.retention import cleanup_old_samples
from pulsewatch.services.scheduler import SchedulerService
from pulsewatch.utils.timeutil import now_seconds


def mock_redis_with_lock(acquired=True):
    mock_redis = MagicMock()
    mock_lock = AsyncMock()
    mock_lock.acquire.return_value = acquired
    mock_redis.lock.return_value = mock_lock

    async def mock_get_redis():
        return mock_redis

    return mock_get_redis, mock_lock


class TestSchedulerLocking:
    """Tests for distributed lock acquisition in scheduled jobs."""

    @pytest.mark.asyncio
    async def test_job_skipped_when_lock_not_acquired(self):
        """Sweep should skip execution when another worker holds the lock."""
        service = SchedulerService(monitor=AsyncMock())
        get_redis, _ = mock_redis_with_lock(acquired=False)

        with patch("pulsewatch.services.scheduler.get_redis", get_redis):
            with patch.object(service, "_execute_missing_data_sweep", new_callable=AsyncMock) as mock_execute:
                await service._run_missing_data_sweep()

                mock_execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_job_executes_when_lock_acquired(self):
        monitor = AsyncMock()
        service = SchedulerService(monitor=monitor)
        get_redis, mock_lock = mock_redis_with_lock(acquired=True)

        with patch("pulsewatch.services.scheduler.get_redis", get_redis):
            await service._run_missing_data_sweep()

        monitor.sweep.assert_awaited_once()
        mock_lock.release.assert_called_once()

    @pytest.mark.asyncio
    async def test_lock_released_even_on_exception(self):
        monitor = AsyncMock()
        monitor.sweep.side_effect = Exception("Test error")
        service = SchedulerService(monitor=monitor)
        get_redis, mock_lock = mock_redis_with_lock(acquired=True)

        with patch("pulsewatch.services.scheduler.get_redis", get_redis):
            await service._run_missing_data_sweep()

        mock_lock.release.assert_called_once()

    @pytest.mark.asyncio
    async def test_runs_without_lock_when_redis_unavailable(self):
        monitor = AsyncMock()
        service = SchedulerService(monitor=monitor)

        async def broken_get_redis():
            raise ConnectionError("redis down")

        with patch("pulsewatch.services.scheduler.get_redis", broken_get_redis):
            await service._run_missing_data_sweep()

        monitor.sweep.assert_awaited_once()


class TestScheduledJobs:
    def test_sweep_job_never_overlaps(self):
        service = SchedulerService(monitor=AsyncMock())

        with patch("pulsewatch.services.scheduler.scheduler") as mock_scheduler:
            service._schedule_missing_data_sweep()

        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == "missing_data_sweep"
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True

    @pytest.mark.asyncio
    async def test_retention_cleanup_deletes_only_old_samples(self, session_factory):
        now = now_seconds()
        async with session_factory() as db:
            db.add_all([
                MetricSample(tenant_id="app-1", metric="cpu", value="1", timestamp=now - 40 * 86400),
                MetricSample(tenant_id="app-1", metric="cpu", value="2", timestamp=now - 10),
            ])
            await db.commit()

        async with session_factory() as db:
            deleted = await cleanup_old_samples(db, retention_days=30)
            await db.commit()

        assert deleted == 1
        async with session_factory() as db:
            remaining = (await db.execute(select(MetricSample.value))).scalars().all()
        assert remaining == ["2"]

    @pytest.mark.asyncio
    async def test_retention_job_uses_session_factory(self, session_factory):
        async with session_factory() as db:
            db.add(MetricSample(tenant_id="app-1", metric="cpu", value="1", timestamp=0))
            await db.commit()

        service = SchedulerService(session_factory=session_factory, monitor=AsyncMock())
        await service._execute_retention_cleanup()

        async with session_factory() as db:
            assert (await db.execute(select(MetricSample))).scalars().all() == []
