"""Response models for provider integrations and Resend administration."""

from __future__ import annotations

from typing import Any

from newsdesk.api.schemas.common import CamelResponse


class IntegrationStatusResponse(CamelResponse):
    service: str
    status: str
    has_key: bool
    config: dict[str, Any]


class IntegrationTestResponse(CamelResponse):
    success: bool
    error: str | None = None


class AudienceResponse(CamelResponse):
    id: str
    name: str


class TopicResponse(CamelResponse):
    id: str | None = None
    name: str
