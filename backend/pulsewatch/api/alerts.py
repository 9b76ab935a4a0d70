"""Alerts API - manage threshold alerts on metrics."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.api.deps import AuthContext, require_permission
from pulsewatch.core.errors import not_found, validation_error
from pulsewatch.db.session import get_db
from pulsewatch.models.alert import AlertConfig
from pulsewatch.schemas.alert import AlertCreate, AlertResponse, AlertUpdate
from pulsewatch.services.evaluation import evaluation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


async def _get_tenant_alert(db: AsyncSession, tenant_id: str, alert_id: UUID) -> AlertConfig:
    result = await db.execute(
        select(AlertConfig).where(AlertConfig.id == alert_id, AlertConfig.tenant_id == tenant_id)
    )
    alert = result.scalar_one_or_none()
    if alert is None:
        raise not_found("Alert", details={"alert_id": str(alert_id)})
    return alert


@router.post("", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
async def create_alert(
    data: AlertCreate,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create an alert. Malformed rules are rejected by schema validation."""
    alert = AlertConfig(
        tenant_id=auth.tenant_id,
        consecutive_breaches=0,
        consecutive_recoveries=0,
        is_active=False,
        **data.model_dump(),
    )
    db.add(alert)
    await db.commit()
    await db.refresh(alert)

    logger.info("Created alert %s on %s/%s", alert.id, auth.tenant_id, alert.metric)
    return alert


@router.get("", response_model=list[AlertResponse])
async def list_alerts(
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    metric: str | None = Query(None),
):
    query = select(AlertConfig).where(AlertConfig.tenant_id == auth.tenant_id)
    if metric:
        query = query.where(AlertConfig.metric == metric)
    result = await db.execute(query.order_by(AlertConfig.created_at.desc()))
    return result.scalars().all()


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: UUID,
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await _get_tenant_alert(db, auth.tenant_id, alert_id)


@router.patch("/{alert_id}", response_model=AlertResponse)
async def update_alert(
    alert_id: UUID,
    data: AlertUpdate,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Edit rule fields. Runtime counters are left to the evaluation engine."""
    alert = await _get_tenant_alert(db, auth.tenant_id, alert_id)

    updates = data.model_dump(exclude_unset=True)
    treat_missing = updates.get("treat_missing_as_breach", alert.treat_missing_as_breach)
    expected_interval = updates.get("expected_interval_seconds", alert.expected_interval_seconds)
    if treat_missing and not expected_interval:
        raise validation_error(
            "expected_interval_seconds is required when treat_missing_as_breach is set"
        )

    for field, value in updates.items():
        setattr(alert, field, value)

    await db.commit()
    await db.refresh(alert)
    return alert


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(
    alert_id: UUID,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete an alert. An evaluation already in flight for it becomes a no-op."""
    alert = await _get_tenant_alert(db, auth.tenant_id, alert_id)
    await db.delete(alert)
    await db.commit()

    evaluation_service.locks.discard(alert_id)
    logger.info("Deleted alert %s", alert_id)
