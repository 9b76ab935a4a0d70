"""
Notification queue.

Committed alert transitions are handed to this queue instead of being
delivered inline. A small pool of worker tasks drains it, looks up the
tenant's enabled destinations and dispatches to all of them in parallel.
A slow or failing destination therefore never stalls sample evaluation,
and one destination's failure never affects another.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.core.config import settings
from pulsewatch.db.session import async_session_maker
from pulsewatch.services.destinations import list_enabled_destinations
from pulsewatch.services.dispatcher import DeliveryResult, dispatch
from pulsewatch.services.state_machine import NotificationRequest

logger = logging.getLogger(__name__)


class NotificationQueue:
    """Bounded in-process queue of notification requests with worker tasks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        workers: int | None = None,
        maxsize: int | None = None,
        dispatcher: Callable[..., Awaitable[DeliveryResult]] | None = None,
    ):
        self._session_factory = session_factory or async_session_maker
        self._worker_count = workers or settings.NOTIFICATION_WORKERS
        self._queue: asyncio.Queue[NotificationRequest] = asyncio.Queue(
            maxsize=maxsize or settings.NOTIFICATION_QUEUE_SIZE
        )
        self._dispatch = dispatcher or dispatch
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start worker tasks. Must be called from a running event loop."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"notification-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Notification queue started with %s workers", self._worker_count)

    async def stop(self, drain_timeout: float = 10.0) -> None:
        """Give queued notifications a chance to go out, then cancel workers."""
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Notification queue stopped with %s undelivered requests", self._queue.qsize()
            )
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Notification queue stopped")

    def enqueue(self, requests: Iterable[NotificationRequest]) -> int:
        """Queue requests without waiting. Returns how many were accepted."""
        accepted = 0
        for request in requests:
            try:
                self._queue.put_nowait(request)
                accepted += 1
            except asyncio.QueueFull:
                logger.error(
                    "Notification queue full, dropping %s notification for alert %s",
                    request.transition_kind.value, request.alert_id,
                )
        return accepted

    async def join(self) -> None:
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            request = await self._queue.get()
            try:
                await self.deliver(request)
            except Exception:
                logger.exception(
                    "Notification worker %s failed for alert %s", index, request.alert_id
                )
            finally:
                self._queue.task_done()

    async def deliver(self, request: NotificationRequest) -> list[DeliveryResult]:
        """Dispatch one request to every enabled destination of its tenant."""
        async with self._session_factory() as db:
            destinations = await list_enabled_destinations(db, request.tenant_id)

        if not destinations:
            logger.debug(
                "No enabled destinations for tenant %s, %s notification for alert %s not sent",
                request.tenant_id, request.transition_kind.value, request.alert_id,
            )
            return []

        payload = request.to_payload()
        outcomes = await asyncio.gather(
            *(
                self._dispatch(destination, payload, session_factory=self._session_factory)
                for destination in destinations
            ),
            return_exceptions=True,
        )

        results = []
        for destination, outcome in zip(destinations, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Dispatch to destination %s raised %s", destination.id, type(outcome).__name__
                )
                results.append(DeliveryResult(success=False, error=str(outcome)))
            else:
                results.append(outcome)
        return results


notification_queue = NotificationQueue()
