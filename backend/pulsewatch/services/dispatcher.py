"""
Notification delivery.

Each call formats one notification for one destination, POSTs it with a
hard timeout and appends exactly one audit record describing the outcome.
Failures are recorded, never retried and never raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulsewatch.core.config import settings
from pulsewatch.db.session import async_session_maker
from pulsewatch.models.destination import NotificationDestination
from pulsewatch.services.formatter import format_message
from pulsewatch.services.notification_audit import append_audit_record
from pulsewatch.services.url_safety import is_safe_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    status_code: int | None = None
    error: str | None = None


async def _post(url: str, body: dict[str, Any], timeout: float) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.post(
            url,
            json=body,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )


async def _deliver(url: str, body: dict[str, Any], timeout: float) -> DeliveryResult:
    """POST body to url; the whole exchange, body included, must finish within timeout."""
    is_safe, reason = await asyncio.to_thread(is_safe_url, url)
    if not is_safe:
        return DeliveryResult(success=False, error=f"Blocked URL: {reason}")

    try:
        # httpx timeouts apply per connect/read/write phase; wait_for bounds the total
        response = await asyncio.wait_for(_post(url, body, timeout), timeout=timeout)
    except (httpx.TimeoutException, asyncio.TimeoutError):
        return DeliveryResult(success=False, error="Timeout")
    except Exception as e:
        return DeliveryResult(success=False, error=f"{type(e).__name__}: {e}")

    if response.is_success:
        return DeliveryResult(success=True, status_code=response.status_code)
    return DeliveryResult(
        success=False,
        status_code=response.status_code,
        error=f"HTTP {response.status_code}",
    )


async def dispatch(
    destination: NotificationDestination,
    payload: dict[str, Any],
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    timeout: float | None = None,
) -> DeliveryResult:
    """
    Deliver a notification payload to one destination.

    Args:
        destination: Target webhook and its message format
        payload: NotificationRequest payload (see NotificationRequest.to_payload)
        session_factory: Session factory for the audit write
        timeout: Request timeout in seconds (defaults to DISPATCH_TIMEOUT_SECONDS)

    Returns:
        DeliveryResult with success flag and status code or error text
    """
    session_factory = session_factory or async_session_maker
    timeout = timeout if timeout is not None else settings.DISPATCH_TIMEOUT_SECONDS

    body = format_message(payload, destination.format)
    result = await _deliver(destination.url, body, timeout)

    alert_id = payload.get("alert", {}).get("id")
    if result.success:
        logger.info(
            "Delivered %s notification for alert %s to destination %s",
            payload.get("transition_kind"), alert_id, destination.id,
        )
    else:
        logger.warning(
            "Notification delivery for alert %s to destination %s failed: %s",
            alert_id, destination.id, result.error,
        )

    try:
        async with session_factory() as db:
            await append_audit_record(
                db,
                alert_id=alert_id,
                destination_id=destination.id,
                tenant_id=payload.get("tenant_id", destination.tenant_id),
                transition_kind=payload.get("transition_kind", "unknown"),
                reason=payload.get("reason"),
                success=result.success,
                status_code=result.status_code,
                error=result.error,
            )
    except Exception:
        logger.exception(
            "Failed to write audit record for alert %s destination %s", alert_id, destination.id
        )

    return result
