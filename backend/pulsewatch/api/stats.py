"""Per-tenant statistics."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulsewatch.api.deps import AuthContext, require_permission
from pulsewatch.db.session import get_db
from pulsewatch.models.alert import AlertConfig
from pulsewatch.models.metric import MetricSample
from pulsewatch.schemas.stats import StatsResponse
from pulsewatch.services.state_machine import DisplayState

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(
    auth: Annotated[AuthContext, Depends(require_permission("r"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    total_metrics = await db.scalar(
        select(func.count(distinct(MetricSample.metric))).where(MetricSample.tenant_id == auth.tenant_id)
    )
    total_points = await db.scalar(
        select(func.count(MetricSample.id)).where(MetricSample.tenant_id == auth.tenant_id)
    )

    result = await db.execute(select(AlertConfig).where(AlertConfig.tenant_id == auth.tenant_id))
    alerts_by_state = {state.value: 0 for state in DisplayState}
    for alert in result.scalars():
        alerts_by_state[alert.display_state.value] += 1

    return StatsResponse(
        tenant_id=auth.tenant_id,
        total_metrics=total_metrics or 0,
        total_data_points=total_points or 0,
        alerts_by_state=alerts_by_state,
    )
