"""Metric ingestion and query schemas."""

from pydantic import BaseModel, Field, field_validator


class MetricSubmit(BaseModel):
    metric: str = Field(..., min_length=1, max_length=255)
    value: str | float | int | bool
    timestamp: int | None = Field(None, ge=0, description="Unix seconds; defaults to now")

    @field_validator("value")
    @classmethod
    def stringify_value(cls, v) -> str:
        # Stored verbatim; non-numeric values are accepted and never breach
        return str(v)


class MetricSubmitResponse(BaseModel):
    success: bool = True
    id: int
    tenant_id: str
    metric: str
    value: str
    timestamp: int


class MetricSummary(BaseModel):
    metric: str
    count: int
    last_updated: int


class MetricPoint(BaseModel):
    value: str
    timestamp: int

    class Config:
        from_attributes = True


class MetricHistoryResponse(BaseModel):
    metric: str
    tenant_id: str
    count: int
    data: list[MetricPoint]


class MetricDeleteResponse(BaseModel):
    success: bool = True
    deleted: int
    tenant_id: str
    metric: str
