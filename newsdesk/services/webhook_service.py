"""Resend delivery webhooks: signature check and event storage."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.errors import NewsdeskError
from newsdesk.core.signing import verify_resend_signature
from newsdesk.db.models.delivery import EmailEvent

logger = logging.getLogger(__name__)


class WebhookSignatureError(NewsdeskError):
    status_code = 401

    def __init__(self, reason: str) -> None:
        super().__init__("Invalid signature", "invalid_signature", details={"reason": reason})


class WebhookPayloadError(NewsdeskError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Webhook body is not a JSON object", "invalid_payload")


def _first(*values: Any) -> str | None:
    for value in values:
        if value:
            return str(value)
    return None


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class WebhookService:
    def __init__(self, session: AsyncSession, secret: str | None = None) -> None:
        self._session = session
        self._secret = secret if secret is not None else settings.resend_webhook_secret

    def verify(
        self, raw_body: str, signature: str | None, timestamp: str | None
    ) -> None:
        if not self._secret:
            logger.warning("RESEND_WEBHOOK_SECRET is not set; accepting unsigned webhook")
            return
        result = verify_resend_signature(raw_body, signature, timestamp, self._secret)
        if not result.ok:
            raise WebhookSignatureError(result.error or "invalid_signature")

    async def _find(self, event_id: str) -> EmailEvent | None:
        result = await self._session.execute(
            select(EmailEvent).where(EmailEvent.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def record_event(self, payload: dict[str, Any]) -> EmailEvent:
        """Upsert by provider event id; events without one are always inserted."""
        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}
        recipients = data.get("to")
        if isinstance(recipients, list):
            recipients = ", ".join(str(item) for item in recipients)

        values = {
            "event_type": str(payload.get("type") or payload.get("event") or "unknown"),
            "email_id": _first(data.get("email_id"), data.get("emailId")),
            "broadcast_id": _first(data.get("broadcast_id"), data.get("broadcastId")),
            "recipient": _first(recipients),
            "subject": _first(data.get("subject")),
            "click_url": _first(data.get("url"), data.get("link")),
            "payload": payload,
            "occurred_at": _parse_datetime(payload.get("created_at") or data.get("created_at")),
        }
        event_id = _first(payload.get("id"), data.get("id"))

        event = await self._find(event_id) if event_id else None
        if event is None:
            event = EmailEvent(event_id=event_id, **values)
            try:
                async with self._session.begin_nested():
                    self._session.add(event)
                return event
            except IntegrityError:
                # A concurrent redelivery stored the same event id first
                event = await self._find(event_id) if event_id else None
                if event is None:
                    raise
                logger.info("Webhook event %s was stored concurrently, updating it", event_id)
        for field, value in values.items():
            setattr(event, field, value)
        await self._session.flush()
        return event

    async def handle(
        self, raw_body: str, signature: str | None, timestamp: str | None
    ) -> EmailEvent:
        self.verify(raw_body, signature, timestamp)
        try:
            payload = json.loads(raw_body or "{}")
        except json.JSONDecodeError as exc:
            raise WebhookPayloadError() from exc
        if not isinstance(payload, dict):
            raise WebhookPayloadError()
        return await self.record_event(payload)


def webhook_service_factory_provider() -> Callable[[AsyncSession], WebhookService]:
    def build(session: AsyncSession) -> WebhookService:
        return WebhookService(session)

    return build
