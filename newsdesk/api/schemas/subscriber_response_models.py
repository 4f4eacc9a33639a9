"""Response models for the public subscriber endpoints and the webhook."""

from __future__ import annotations

from newsdesk.api.schemas.common import CamelResponse


class SubscribeResponse(CamelResponse):
    success: bool = True
    welcome_email_sent: bool
    welcome_email_error: str | None = None


class PreferencesResponse(CamelResponse):
    email: str
    daily_enabled: bool
    weekly_enabled: bool


class UnsubscribeResponse(CamelResponse):
    success: bool = True
    message: str


class WebhookReceivedResponse(CamelResponse):
    received: bool = True
    event_id: str | None = None
