"""Response models for meta API endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from newsdesk.api.schemas.common import CamelResponse


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str


class ActivityEntryResponse(CamelResponse):
    id: str
    event: str
    status: str
    message: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_")
    created_at: datetime
