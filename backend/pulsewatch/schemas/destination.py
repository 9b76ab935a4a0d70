"""Notification destination schemas for API request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl, model_validator


class DestinationFormat(str, Enum):
    """Message formats a destination can receive."""

    GENERIC = "generic"
    SLACK = "slack"
    DISCORD = "discord"


class DestinationCreate(BaseModel):
    """Schema for creating a new destination."""

    name: str = Field(..., min_length=1, max_length=100)
    url: HttpUrl
    format: DestinationFormat = DestinationFormat.GENERIC
    enabled: bool = True


class DestinationUpdate(BaseModel):
    """Schema for updating an existing destination."""

    name: str | None = Field(None, min_length=1, max_length=100)
    url: HttpUrl | None = None
    format: DestinationFormat | None = None
    enabled: bool | None = None

    @model_validator(mode="after")
    def reject_nulls(self):
        cleared = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class DestinationResponse(BaseModel):
    """Schema for destination API responses."""

    id: UUID
    tenant_id: str
    name: str
    url: str
    format: str
    enabled: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
