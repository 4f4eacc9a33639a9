"""Request models for sequences, previews, test sends and ad hoc email."""

from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field, field_validator, model_validator

from newsdesk.api.schemas.common import CamelModel
from newsdesk.services.schedule import DAY_ORDER, parse_time

SequenceStatus = Literal["draft", "active", "paused"]


def _validate_days(days: list[str] | None) -> list[str] | None:
    if days is None:
        return None
    normalized = [day.strip().lower() for day in days]
    unknown = [day for day in normalized if day not in DAY_ORDER]
    if unknown:
        raise ValueError(f"Unknown day(s): {', '.join(unknown)}")
    return normalized


def _validate_time(value: str | None) -> str | None:
    if value is None:
        return None
    hour, minute = parse_time(value)
    return f"{hour:02d}:{minute:02d}"


class SequenceCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    subject: str | None = Field(default=None, max_length=300)
    audience_id: str = Field(..., min_length=1, max_length=2048)
    topic_id: str | None = None
    day_of_week: list[str] = Field(default_factory=list)
    time: str = "09:00"
    timezone: str = "America/New_York"
    system_prompt: str | None = None
    user_prompt: str | None = None
    template_id: str | None = None
    content_sources: list[str] = Field(default_factory=list)
    status: SequenceStatus = "draft"

    @field_validator("day_of_week")
    @classmethod
    def validate_days(cls, v: list[str]) -> list[str] | None:
        return _validate_days(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str | None:
        return _validate_time(v)


class SequenceUpdateRequest(CamelModel):
    """Partial update; ``schedule`` is always derived from days and time."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    subject: str | None = Field(default=None, max_length=300)
    audience_id: str | None = Field(default=None, min_length=1, max_length=2048)
    topic_id: str | None = None
    day_of_week: list[str] | None = None
    time: str | None = None
    timezone: str | None = None
    system_prompt: str | None = None
    user_prompt: str | None = None
    template_id: str | None = None
    content_sources: list[str] | None = None
    status: SequenceStatus | None = None

    @field_validator("day_of_week")
    @classmethod
    def validate_days(cls, v: list[str] | None) -> list[str] | None:
        return _validate_days(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str | None) -> str | None:
        return _validate_time(v)


class SequencePreviewRequest(CamelModel):
    system_prompt: str | None = None
    user_prompt: str | None = None
    html_template: str | None = None
    day_of_week: list[str] | None = None
    content_sources: list[str] | None = None
    subject: str | None = None

    @field_validator("day_of_week")
    @classmethod
    def validate_days(cls, v: list[str] | None) -> list[str] | None:
        return _validate_days(v)


class SequenceTestRequest(CamelModel):
    test_email: EmailStr
    system_prompt: str | None = None
    user_prompt: str | None = None
    custom_html: str | None = None
    content_sources: list[str] | None = None


class SequencePromptsRequest(CamelModel):
    system_prompt: str | None = None
    user_prompt: str | None = None

    @model_validator(mode="after")
    def require_one(self) -> SequencePromptsRequest:
        if self.system_prompt is None and self.user_prompt is None:
            raise ValueError("systemPrompt or userPrompt is required")
        return self


class AdhocEmailRequest(CamelModel):
    subject: str = Field(..., min_length=1)
    html: str = Field(..., min_length=1)
    emails: list[EmailStr] | None = None
    audience_id: str | None = None

    @model_validator(mode="after")
    def require_recipients(self) -> AdhocEmailRequest:
        if not self.emails and not self.audience_id:
            raise ValueError("Either emails or audienceId must be provided")
        return self
