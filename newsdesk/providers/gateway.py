"""Session-scoped access to configured providers."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.errors import ConfigurationError
from newsdesk.llm.client import LLMClient
from newsdesk.providers.airtable import AirtableClient
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.resend import ResendClient
from newsdesk.providers.service_keys import ServiceKeyStore


@dataclass(frozen=True)
class Sender:
    name: str
    email: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class ProviderGateway:
    def __init__(self, session: AsyncSession, factory: ProviderFactory) -> None:
        self.keys = ServiceKeyStore(session)
        self.factory = factory

    async def email_or_none(self) -> ResendClient | None:
        api_key = await self.keys.get_key("resend")
        return self.factory.resend(api_key) if api_key else None

    async def email(self) -> ResendClient:
        client = await self.email_or_none()
        if client is None:
            raise ConfigurationError(
                "Resend API key not configured. Add it under Integrations or set RESEND_API_KEY.",
                "resend_not_configured",
            )
        return client

    async def sender(self) -> Sender:
        record = await self.keys.get_record("resend")
        name = (record.resend_from_name if record else None) or settings.default_from_name
        email = (record.resend_from_email if record else None) or settings.default_from_email
        return Sender(name=name, email=email)

    async def records(self) -> AirtableClient | None:
        """Airtable client when key, base and table are all configured."""
        record = await self.keys.get_record("airtable")
        if record is None:
            return None
        api_key = await self.keys.get_key("airtable")
        base_id = record.airtable_base_id or settings.airtable_base_id
        table_id = record.airtable_table_id or record.airtable_table_name
        if not api_key or not base_id or not table_id:
            return None
        return self.factory.airtable(api_key, base_id, table_id)

    async def llm(self) -> LLMClient:
        api_key = await self.keys.get_key("gemini")
        if not api_key:
            raise ConfigurationError(
                "Gemini API key not configured. Add it under Integrations or set GEMINI_API_KEY.",
                "gemini_not_configured",
            )
        record = await self.keys.get_record("gemini")
        return self.factory.llm(api_key, record.gemini_model if record else None)
