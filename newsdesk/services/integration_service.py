"""Provider credentials as the admin UI sees them: status, save, test."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.errors import ConfigurationError, NewsdeskError
from newsdesk.llm.client import LLMClient, normalize_gemini_model
from newsdesk.providers.base import Provider
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.providers.service_keys import SERVICES
from newsdesk.services.activity_service import ActivityLogger

logger = logging.getLogger(__name__)


class IntegrationError(NewsdeskError):
    status_code = 400


@dataclass(frozen=True)
class IntegrationStatus:
    service: str
    status: str
    has_key: bool
    config: dict[str, Any]


@dataclass(frozen=True)
class IntegrationTestResult:
    success: bool
    error: str | None = None


class IntegrationService:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        activity: ActivityLogger | None = None,
    ) -> None:
        self._session = session
        self._providers = providers
        self._keys = providers.keys
        self._activity = activity or ActivityLogger(session)

    async def list_status(self) -> list[IntegrationStatus]:
        """Connection status per service. Keys themselves are never returned."""
        statuses = []
        for service in SERVICES:
            key = await self._keys.get_key(service)
            record = await self._keys.get_record(service)
            if service == "gemini":
                config: dict[str, Any] = {
                    "geminiModel": normalize_gemini_model(record.gemini_model if record else None)
                }
            elif service == "resend":
                sender = await self._providers.sender()
                config = {"resendFromName": sender.name, "resendFromEmail": sender.email}
            else:
                config = {
                    "airtableBaseId": (record.airtable_base_id if record else None)
                    or settings.airtable_base_id,
                    "airtableTableId": record.airtable_table_id if record else None,
                    "airtableTableName": record.airtable_table_name if record else None,
                }
            statuses.append(
                IntegrationStatus(
                    service=service,
                    status="connected" if key else "disconnected",
                    has_key=bool(key),
                    config=config,
                )
            )
        return statuses

    async def save(self, service: str, key: str | None, **config: Any) -> None:
        if await self._keys.get_record(service) is None and not key:
            raise IntegrationError(
                "API key is required for new integrations", "api_key_required"
            )
        await self._keys.save(service, key, **config)
        await self._activity.log(
            "integrations.saved",
            f"Integration saved: {service}.",
            "success",
            {"service": service},
        )

    async def _client_for(
        self, service: str, key: str, model: str | None
    ) -> Provider | LLMClient:
        factory = self._providers.factory
        if service == "gemini":
            record = await self._keys.get_record("gemini")
            return factory.llm(key, model or (record.gemini_model if record else None))
        if service == "resend":
            return factory.resend(key)
        record = await self._keys.get_record("airtable")
        base_id = (record.airtable_base_id if record else None) or settings.airtable_base_id
        table_id = (record.airtable_table_id or record.airtable_table_name) if record else None
        if not base_id or not table_id:
            raise ConfigurationError(
                "Airtable base and table must be configured before testing.",
                "airtable_not_configured",
            )
        return factory.airtable(key, base_id, table_id)

    async def test(
        self, service: str, key: str | None = None, model: str | None = None
    ) -> IntegrationTestResult:
        """Exercise the provider with the given key, else the stored one.

        The stored status is updated only when testing the stored key.
        """
        using_provided = bool(key)
        api_key = key or await self._keys.get_key(service)
        if not api_key:
            raise IntegrationError("API key not configured", "api_key_missing")

        try:
            client = await self._client_for(service, api_key, model)
            await client.test_connection()
        except NewsdeskError as exc:
            logger.warning("Integration test failed for %s: %s", service, exc)
            if not using_provided:
                await self._keys.set_status(service, "disconnected")
            await self._activity.log(
                "integrations.test.error",
                f"Integration test failed: {service}.",
                "error",
                {"service": service, "error": str(exc)},
            )
            return IntegrationTestResult(success=False, error=str(exc))

        if not using_provided:
            await self._keys.set_status(service, "connected")
        await self._activity.log(
            "integrations.test.success",
            f"Integration test succeeded: {service}.",
            "success",
            {"service": service},
        )
        return IntegrationTestResult(success=True)


def integration_service_factory_provider(
    factory: ProviderFactory,
) -> Callable[[AsyncSession], IntegrationService]:
    def build(session: AsyncSession) -> IntegrationService:
        return IntegrationService(session, ProviderGateway(session, factory))

    return build
