"""Response models for the weekly newsletter endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from newsdesk.api.schemas.common import CamelResponse
from newsdesk.api.schemas.content_response_models import SavedContentResponse


class WeeklyNewsletterResponse(CamelResponse):
    id: str
    week_start: date
    week_end: date
    subject: str | None = None
    chefs_table_title: str | None = None
    chefs_table_body: str | None = None
    news_items: list[dict[str, Any]]
    recipe_ids: list[str]
    cooking_items: list[dict[str, Any]]
    status: str
    audience_id: str | None = None
    sent_at: datetime | None = None
    created_at: datetime


class WeeklyNewsletterDetailResponse(WeeklyNewsletterResponse):
    recipes: list[SavedContentResponse] = []


class ChefsTable(CamelResponse):
    title: str | None = None
    body: str | None = None


class ChefsTableResponse(CamelResponse):
    newsletter: WeeklyNewsletterResponse
    generated: ChefsTable


class WeeklyPreviewResponse(CamelResponse):
    html: str
    context: dict[str, Any]


class WeeklySendResponse(CamelResponse):
    success: bool = True
    type: str
    email_id: str | None = None
    to: str | None = None
    broadcast_id: str | None = None
    audience_id: str | None = None


class WeeklyNewsItem(CamelResponse):
    id: str
    title: str
    url: str
    summary: str = ""
    source: str = ""


class FetchNewsResponse(CamelResponse):
    items: list[WeeklyNewsItem]
