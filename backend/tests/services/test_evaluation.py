"""Tests for the alert evaluation service (database backed)."""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pulsewatch.core.exceptions import StatePersistenceError
from pulsewatch.services.evaluation import AlertEvaluationService, AlertLockRegistry
from pulsewatch.services.state_machine import TransitionKind
from pulsewatch.utils.timeutil import from_unix_seconds

# 2026-01-01T00:00:00Z
BASE_TS = 1767225600


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.enqueue = MagicMock(side_effect=lambda requests: len(requests))
    return notifier


@pytest.fixture
def service(session_factory, notifier):
    return AlertEvaluationService(session_factory=session_factory, notifier=notifier)


def enqueued_kinds(notifier):
    return [
        request.transition_kind
        for call in notifier.enqueue.call_args_list
        for request in call.args[0]
    ]


class TestOnSample:
    @pytest.mark.asyncio
    async def test_breach_persists_state_then_enqueues(self, service, notifier, make_alert, load_alert):
        alert = await make_alert()

        requests = await service.on_sample("app-1", "cpu", "95", BASE_TS)

        assert [r.transition_kind for r in requests] == [TransitionKind.ENTERED]
        notifier.enqueue.assert_called_once_with(requests)

        stored = await load_alert(alert.id)
        assert stored.is_active is True
        assert stored.consecutive_breaches == 1
        assert stored.runtime_state().last_notified_at == from_unix_seconds(BASE_TS)
        assert stored.runtime_state().last_sample_at == from_unix_seconds(BASE_TS)

    @pytest.mark.asyncio
    async def test_hysteresis_across_samples(self, service, notifier, make_alert, load_alert):
        alert = await make_alert(enter_threshold=3, exit_threshold=3)

        for i, value in enumerate(["92", "95", "98", "75", "70", "65"]):
            await service.on_sample("app-1", "cpu", value, BASE_TS + i * 10)

        assert enqueued_kinds(notifier) == [TransitionKind.ENTERED, TransitionKind.RECOVERED]
        stored = await load_alert(alert.id)
        assert stored.is_active is False
        assert stored.consecutive_recoveries == 3

    @pytest.mark.asyncio
    async def test_non_breaching_sample_enqueues_nothing(self, service, notifier, make_alert):
        await make_alert()

        assert await service.on_sample("app-1", "cpu", "10", BASE_TS) == []
        notifier.enqueue.assert_not_called()

    @pytest.mark.asyncio
    async def test_only_matching_tenant_and_metric_are_evaluated(
        self, service, make_alert, load_alert
    ):
        target = await make_alert()
        other_metric = await make_alert(metric="memory")
        other_tenant = await make_alert(tenant_id="app-2")
        disabled = await make_alert(enabled=False)

        await service.on_sample("app-1", "cpu", "95", BASE_TS)

        assert (await load_alert(target.id)).is_active is True
        for alert in (other_metric, other_tenant, disabled):
            stored = await load_alert(alert.id)
            assert stored.is_active is False
            assert stored.consecutive_breaches == 0

    @pytest.mark.asyncio
    async def test_every_alert_on_metric_is_evaluated(self, service, notifier, make_alert):
        await make_alert(name="warn", threshold="80")
        await make_alert(name="crit", threshold="90")
        await make_alert(name="never", threshold="99")

        requests = await service.on_sample("app-1", "cpu", "95", BASE_TS)

        assert sorted(r.alert["name"] for r in requests) == ["crit", "warn"]


class TestPersistence:
    @pytest.mark.asyncio
    async def test_persist_failure_sends_nothing(self, service, notifier, make_alert, load_alert):
        alert = await make_alert()

        with patch(
            "pulsewatch.services.evaluation.persist_runtime_state",
            AsyncMock(side_effect=StatePersistenceError(alert.id, "OperationalError")),
        ):
            requests = await service.on_sample("app-1", "cpu", "95", BASE_TS)

        assert requests == []
        notifier.enqueue.assert_not_called()
        assert (await load_alert(alert.id)).is_active is False

    @pytest.mark.asyncio
    async def test_next_sample_rederives_transition_after_failed_persist(
        self, service, notifier, make_alert
    ):
        await make_alert()

        with patch(
            "pulsewatch.services.evaluation.persist_runtime_state",
            AsyncMock(side_effect=StatePersistenceError("x", "OperationalError")),
        ):
            await service.on_sample("app-1", "cpu", "95", BASE_TS)

        await service.on_sample("app-1", "cpu", "96", BASE_TS + 10)

        assert enqueued_kinds(notifier) == [TransitionKind.ENTERED]

    @pytest.mark.asyncio
    async def test_failure_of_one_alert_does_not_block_siblings(
        self, service, notifier, make_alert, load_alert
    ):
        broken = await make_alert(name="broken")
        healthy = await make_alert(name="healthy")

        from pulsewatch.services import evaluation

        real_persist = evaluation.persist_runtime_state

        async def flaky_persist(db, alert, state):
            if alert.id == broken.id:
                raise StatePersistenceError(alert.id, "OperationalError")
            await real_persist(db, alert, state)

        with patch("pulsewatch.services.evaluation.persist_runtime_state", flaky_persist):
            requests = await service.on_sample("app-1", "cpu", "95", BASE_TS)

        assert [r.alert["name"] for r in requests] == ["healthy"]
        assert (await load_alert(healthy.id)).is_active is True
        assert (await load_alert(broken.id)).is_active is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated(self, service, notifier, make_alert):
        await make_alert()

        with patch(
            "pulsewatch.services.evaluation.observe", side_effect=RuntimeError("boom")
        ):
            assert await service.on_sample("app-1", "cpu", "95", BASE_TS) == []

        notifier.enqueue.assert_not_called()


class TestDeletedAlerts:
    @pytest.mark.asyncio
    async def test_missing_alert_is_a_noop(self, service, notifier):
        observation = await service.evaluate_missing(uuid.uuid4(), from_unix_seconds(BASE_TS))

        assert observation is None
        notifier.enqueue.assert_not_called()

    @pytest.mark.asyncio
    async def test_alert_disabled_mid_flight_is_a_noop(
        self, service, notifier, make_alert, session_factory
    ):
        alert = await make_alert()
        async with session_factory() as db:
            stored = await db.get(type(alert), alert.id)
            stored.enabled = False
            await db.commit()

        observation = await service._evaluate(alert.id, "95", from_unix_seconds(BASE_TS), False)

        assert observation is None
        notifier.enqueue.assert_not_called()


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_samples_for_one_alert_are_serialised(
        self, service, notifier, make_alert, load_alert
    ):
        alert = await make_alert(enter_threshold=5)

        await asyncio.gather(
            *(service.on_sample("app-1", "cpu", "95", BASE_TS + i) for i in range(10))
        )

        assert enqueued_kinds(notifier) == [TransitionKind.ENTERED]
        stored = await load_alert(alert.id)
        assert stored.consecutive_breaches == 10
        assert stored.is_active is True

    @pytest.mark.asyncio
    async def test_concurrent_recovery_emits_exactly_once(
        self, service, notifier, make_alert
    ):
        await make_alert(enter_threshold=1, exit_threshold=3)
        await service.on_sample("app-1", "cpu", "95", BASE_TS)

        await asyncio.gather(
            *(service.on_sample("app-1", "cpu", "10", BASE_TS + 1 + i) for i in range(6))
        )

        assert enqueued_kinds(notifier) == [TransitionKind.ENTERED, TransitionKind.RECOVERED]


class TestAlertLockRegistry:
    def test_same_alert_gets_same_lock(self):
        locks = AlertLockRegistry()
        alert_id = uuid.uuid4()

        assert locks.lock_for(alert_id) is locks.lock_for(alert_id)
        assert locks.lock_for(uuid.uuid4()) is not locks.lock_for(alert_id)

    @pytest.mark.asyncio
    async def test_discard_keeps_held_lock(self):
        locks = AlertLockRegistry()
        alert_id = uuid.uuid4()

        async with locks.lock_for(alert_id):
            locks.discard(alert_id)
            assert len(locks) == 1

        locks.discard(alert_id)
        assert len(locks) == 0
