"""API key schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from pulsewatch.models.api_key import ApiKeyRole


class ApiKeyCreate(BaseModel):
    name: str | None = Field(None, max_length=255)
    role: ApiKeyRole = ApiKeyRole.READ_WRITE


class ApiKeyUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    enabled: bool | None = None


class ApiKeyResponse(BaseModel):
    id: UUID
    name: str | None = None
    key_prefix: str
    role: str
    enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ApiKeyCreateResponse(ApiKeyResponse):
    key: str  # Only returned once at creation
