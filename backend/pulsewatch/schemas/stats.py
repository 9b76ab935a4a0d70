"""Tenant statistics schema."""

from pydantic import BaseModel


class StatsResponse(BaseModel):
    tenant_id: str
    total_metrics: int
    total_data_points: int
    alerts_by_state: dict[str, int]
