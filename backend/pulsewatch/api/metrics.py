"""Metrics API - sample ingestion and history."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.api.deps import AuthContext, require_permission
from pulsewatch.db.session import get_db
from pulsewatch.models.metric import MetricSample
from pulsewatch.schemas.metric import (
    MetricDeleteResponse,
    MetricHistoryResponse,
    MetricPoint,
    MetricSubmit,
    MetricSubmitResponse,
    MetricSummary,
)
from pulsewatch.services.ingestion import schedule_evaluation, store_sample
from pulsewatch.utils.timeutil import now_seconds, parse_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.post("", response_model=MetricSubmitResponse)
async def submit_metric(
    data: MetricSubmit,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Store a sample and trigger alert evaluation without waiting for it."""
    timestamp = data.timestamp if data.timestamp is not None else now_seconds()

    sample = await store_sample(db, auth.tenant_id, data.metric, data.value, timestamp)

    schedule_evaluation(auth.tenant_id, data.metric, data.value, timestamp)

    return MetricSubmitResponse(
        id=sample.id,
        tenant_id=auth.tenant_id,
        metric=data.metric,
        value=data.value,
        timestamp=timestamp,
    )


@router.get("", response_model=list[MetricSummary])
async def list_metrics(
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List metric names with sample counts, most recently updated first."""
    last_updated = func.max(MetricSample.timestamp)
    result = await db.execute(
        select(MetricSample.metric, func.count().label("count"), last_updated.label("last_updated"))
        .where(MetricSample.tenant_id == auth.tenant_id)
        .group_by(MetricSample.metric)
        .order_by(last_updated.desc())
    )
    return [
        MetricSummary(metric=row.metric, count=row.count, last_updated=row.last_updated)
        for row in result
    ]


@router.get("/{name}", response_model=MetricHistoryResponse)
async def get_metric_history(
    name: str,
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(100, ge=1, le=10000),
    range: str | None = Query(None, description="Time window such as 30m, 24h or 7d"),
):
    """Return samples for one metric in ascending time order."""
    query = select(MetricSample).where(
        MetricSample.tenant_id == auth.tenant_id,
        MetricSample.metric == name,
    )

    window = parse_range(range)
    if window:
        query = query.where(MetricSample.timestamp >= now_seconds() - window)

    result = await db.execute(query.order_by(MetricSample.timestamp.asc()).limit(limit))
    samples = result.scalars().all()

    return MetricHistoryResponse(
        metric=name,
        tenant_id=auth.tenant_id,
        count=len(samples),
        data=[MetricPoint.model_validate(s) for s in samples],
    )


@router.delete("/{name}", response_model=MetricDeleteResponse)
async def delete_metric(
    name: str,
    auth: Annotated[AuthContext, Depends(require_permission("w"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete every stored sample of a metric. Alerts on the metric are kept."""
    result = await db.execute(
        delete(MetricSample).where(
            MetricSample.tenant_id == auth.tenant_id,
            MetricSample.metric == name,
        )
    )
    await db.commit()

    deleted = result.rowcount or 0
    logger.info("Deleted %s samples of %s/%s", deleted, auth.tenant_id, name)
    return MetricDeleteResponse(deleted=deleted, tenant_id=auth.tenant_id, metric=name)
