"""Request models for provider integrations and Resend administration."""

from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field

from newsdesk.api.schemas.common import CamelModel


class IntegrationSaveRequest(CamelModel):
    service: Literal["gemini", "airtable", "resend"]
    key: str | None = None
    gemini_model: str | None = None
    airtable_base_id: str | None = None
    airtable_table_id: str | None = None
    airtable_table_name: str | None = None
    resend_from_name: str | None = Field(default=None, max_length=200)
    resend_from_email: EmailStr | None = None


class IntegrationTestRequest(CamelModel):
    service: Literal["gemini", "airtable", "resend"]
    key: str | None = None
    gemini_model: str | None = None


class TopicCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
