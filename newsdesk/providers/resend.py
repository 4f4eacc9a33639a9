from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from newsdesk.providers.base import HttpProvider

logger = logging.getLogger(__name__)

BATCH_LIMIT = 100


@dataclass(frozen=True)
class OutgoingEmail:
    sender: str
    to: list[str]
    subject: str
    html: str
    text: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "html": self.html,
        }
        if self.text:
            payload["text"] = self.text
        return payload


@dataclass(frozen=True)
class Audience:
    id: str
    name: str


@dataclass(frozen=True)
class Contact:
    email: str
    unsubscribed: bool = False


def _items(payload: Any) -> list[dict[str, Any]]:
    data = payload.get("data") if isinstance(payload, dict) else None
    return [item for item in data or [] if isinstance(item, dict)]


class ResendClient(HttpProvider):
    """Email provider: transactional sends, audiences, broadcasts and topics."""

    name = "resend"
    base_url = "https://api.resend.com"

    async def test_connection(self) -> None:
        await self._request("GET", "/audiences")

    async def send_email(self, email: OutgoingEmail) -> str | None:
        result = await self._request("POST", "/emails", json=email.to_payload())
        return result.get("id")

    async def send_batch(self, emails: list[OutgoingEmail]) -> list[str]:
        """Send up to ``BATCH_LIMIT`` emails in one provider call."""
        if len(emails) > BATCH_LIMIT:
            raise ValueError(f"Batch sends are limited to {BATCH_LIMIT} emails")
        result = await self._request(
            "POST", "/emails/batch", json=[email.to_payload() for email in emails]
        )
        return [item["id"] for item in _items(result) if "id" in item]

    async def list_audiences(self) -> list[Audience]:
        result = await self._request("GET", "/audiences")
        return [
            Audience(id=str(item["id"]), name=str(item.get("name") or ""))
            for item in _items(result)
            if item.get("id")
        ]

    async def find_audience_by_name(self, name: str) -> Audience | None:
        wanted = name.strip().lower()
        for audience in await self.list_audiences():
            if audience.name.strip().lower() == wanted:
                return audience
        return None

    async def list_contacts(self, audience_id: str | None = None) -> list[Contact]:
        path = f"/audiences/{audience_id}/contacts" if audience_id else "/contacts"
        contacts: list[Contact] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"limit": 100}
            if cursor:
                params["cursor"] = cursor
            result = await self._request("GET", path, params=params)
            page = _items(result)
            contacts.extend(
                Contact(email=str(item["email"]), unsubscribed=bool(item.get("unsubscribed")))
                for item in page
                if item.get("email")
            )
            cursor = None
            if isinstance(result, dict):
                cursor = result.get("next") or result.get("cursor")
            if not cursor or not page:
                return contacts

    async def create_contact(self, email: str, audience_id: str | None = None) -> str | None:
        """Add a contact, globally when no audience is given."""
        path = f"/audiences/{audience_id}/contacts" if audience_id else "/contacts"
        result = await self._request("POST", path, json={"email": email, "unsubscribed": False})
        return result.get("id")

    async def update_contact(self, audience_id: str, email: str, *, unsubscribed: bool) -> None:
        await self._request(
            "PATCH",
            f"/audiences/{audience_id}/contacts/{email}",
            json={"unsubscribed": unsubscribed},
        )

    async def create_broadcast(
        self,
        *,
        name: str,
        audience_id: str,
        sender: str,
        subject: str,
        html: str,
        text: str | None = None,
        preview_text: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "name": name,
            "audience_id": audience_id,
            "from": sender,
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text
        if preview_text:
            payload["preview_text"] = preview_text
        result = await self._request("POST", "/broadcasts", json=payload)
        broadcast_id = result.get("id")
        if not broadcast_id:
            raise ValueError("Resend did not return a broadcast id")
        return str(broadcast_id)

    async def send_broadcast(self, broadcast_id: str) -> None:
        await self._request("POST", f"/broadcasts/{broadcast_id}/send")

    async def list_topics(self) -> list[dict[str, Any]]:
        result = await self._request("GET", "/topics", params={"limit": 100})
        return _items(result)

    async def create_topic(self, name: str, description: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": name,
            "default_subscription": "opt_in",
            "visibility": "private",
        }
        if description:
            payload["description"] = description
        return await self._request("POST", "/topics", json=payload)
