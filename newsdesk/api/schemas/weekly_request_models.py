"""Request models for the weekly newsletter endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import EmailStr, Field

from newsdesk.api.schemas.common import CamelModel


class WeeklyNewsletterCreateRequest(CamelModel):
    week_start: date | None = None


class WeeklyNewsletterUpdateRequest(CamelModel):
    subject: str | None = Field(default=None, max_length=300)
    chefs_table_title: str | None = Field(default=None, max_length=300)
    chefs_table_body: str | None = None
    news_items: list[dict[str, Any]] | None = None
    recipe_ids: list[str] | None = None
    cooking_items: list[dict[str, Any]] | None = None
    status: Literal["draft", "ready", "sent"] | None = None
    audience_id: str | None = None


class ChefsTableRequest(CamelModel):
    custom_prompt: str | None = None


class WeeklyPreviewRequest(CamelModel):
    origin: str | None = None


class WeeklySendRequest(CamelModel):
    test_email: EmailStr | None = None
    origin: str | None = None


class FetchNewsRequest(CamelModel):
    limit: int | None = None
