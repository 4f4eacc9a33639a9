"""Request models for prompts, templates and the ingestion schedule."""

from __future__ import annotations

from pydantic import Field, field_validator

from newsdesk.api.schemas.common import CamelModel
from newsdesk.llm.prompts import PromptKey
from newsdesk.services.schedule import DAY_ORDER, parse_time


class PromptUpdateRequest(CamelModel):
    key: PromptKey
    prompt: str = Field(..., min_length=1)


class PromptResetRequest(CamelModel):
    key: PromptKey


class TemplateCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    html: str = Field(..., min_length=1)
    description: str | None = None
    is_default: bool = False
    include_footer: bool = True


class TemplateUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    html: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_default: bool | None = None
    include_footer: bool | None = None


class WelcomeTemplateRequest(CamelModel):
    html: str
    enabled: bool
    subject: str | None = Field(default=None, max_length=300)


class IngestionConfigRequest(CamelModel):
    schedule: list[str]
    time: str
    timezone: str = Field(..., min_length=1, max_length=64)
    time_frame: int = Field(..., ge=1, le=24 * 14)

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, v: list[str]) -> list[str]:
        days = [day.strip().lower() for day in v]
        unknown = [day for day in days if day not in DAY_ORDER]
        if unknown:
            raise ValueError(f"Unknown day(s): {', '.join(unknown)}")
        return days

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        hour, minute = parse_time(v)
        return f"{hour:02d}:{minute:02d}"


class IngestionTestRequest(CamelModel):
    time_frame: int = Field(default=24, ge=1, le=24 * 14)
    system_prompt: str | None = None
    user_prompt: str | None = None
