"""Response models for prompts, templates and the ingestion schedule."""

from __future__ import annotations

from datetime import datetime

from newsdesk.api.schemas.common import CamelResponse


class PromptResponse(CamelResponse):
    key: str
    label: str
    description: str
    prompt: str | None = None
    is_default: bool
    variables: list[str]


class TemplateResponse(CamelResponse):
    id: str
    name: str
    description: str | None = None
    html: str
    is_default: bool
    include_footer: bool
    created_at: datetime
    updated_at: datetime
    usage_count: int = 0


class WelcomeTemplateResponse(CamelResponse):
    subject: str
    html: str
    enabled: bool


class IngestionConfigResponse(CamelResponse):
    schedule: list[str]
    time: str
    timezone: str
    time_frame: int
    prompt_key: str = "ingestion"
