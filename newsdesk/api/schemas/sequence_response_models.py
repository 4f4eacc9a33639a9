"""Response models for sequences, distribution and cron runs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from newsdesk.api.schemas.common import CamelResponse


class SequenceResponse(CamelResponse):
    id: str
    name: str
    subject: str | None = None
    audience_id: str | None = None
    topic_id: str | None = None
    day_of_week: list[str]
    time: str
    timezone: str
    system_prompt: str | None = None
    user_prompt: str | None = None
    template_id: str | None = None
    content_sources: list[str]
    status: str
    schedule: str | None = None
    last_sent: datetime | None = None
    created_at: datetime


class PreviewMeta(CamelResponse):
    article_count: int
    source: str | None = None


class SequencePreviewResponse(CamelResponse):
    html: str
    content: dict[str, Any]
    articles: list[dict[str, Any]]
    meta: PreviewMeta


class DeliveryResponse(CamelResponse):
    success: bool = True
    mode: str
    sent: int
    failed: int
    broadcast_id: str | None = None


class SequenceSendResponse(CamelResponse):
    success: bool = True
    message: str
    skipped: bool = False


class SequencePromptsResponse(CamelResponse):
    system_prompt: str
    user_prompt: str
    is_default: bool


class ScheduledRunResponse(CamelResponse):
    sequence_id: str
    success: bool
    error: str | None = None


class CronDistributionResponse(CamelResponse):
    success: bool = True
    results: list[ScheduledRunResponse]


class IngestionRunResponse(CamelResponse):
    success: bool = True
    processed: int
    selected: int
    stored: int
    time_frame: int | None = None
