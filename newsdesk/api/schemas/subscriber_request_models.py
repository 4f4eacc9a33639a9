"""Request models for the public subscriber endpoints."""

from __future__ import annotations

from pydantic import EmailStr, Field

from newsdesk.api.schemas.common import CamelModel


class SubscribeRequest(CamelModel):
    """The address is checked by the route so a bad one gets ``invalid_email``."""

    email: str = Field(..., max_length=320)


class PreferencesUpdateRequest(CamelModel):
    email: EmailStr
    token: str = Field(..., min_length=1)
    exp: str = Field(..., min_length=1)
    daily_enabled: bool
    weekly_enabled: bool


class UnsubscribeRequest(CamelModel):
    email: EmailStr
    token: str | None = None
    exp: str | None = None
