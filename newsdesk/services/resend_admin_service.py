"""Read-mostly Resend listings for the admin UI."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.cache import TTLCache
from newsdesk.core.errors import ProviderError
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.providers.resend import Audience
from newsdesk.services.distribution_service import ALL_CONTACTS_AUDIENCE

logger = logging.getLogger(__name__)

LISTING_TTL_SECONDS = 30
ALL_SUBSCRIBERS_LABEL = "All Subscribers (Resend)"


def audience_options(audiences: list[Audience]) -> list[Audience]:
    """Audiences for the sequence picker, the all-contacts entry first.

    Without an "All Contacts" audience the first entry is the ``resend_all``
    sentinel, which distribution resolves at send time.
    """
    everyone = next(
        (item for item in audiences if item.name.lower() == ALL_CONTACTS_AUDIENCE.lower()), None
    )
    others = [item for item in audiences if everyone is None or item.id != everyone.id]
    first = Audience(id=everyone.id if everyone else "resend_all", name=ALL_SUBSCRIBERS_LABEL)
    return [first, *others]


class ResendAdminService:
    """Audiences and topics, each cached briefly with single-flight loads.

    Admin pages poll these lists; the cache keeps repeated views from
    tripping Resend's rate limit.
    """

    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        audiences_cache: TTLCache[list[Audience]],
        topics_cache: TTLCache[list[dict[str, Any]]],
    ) -> None:
        self._session = session
        self._providers = providers
        self._audiences = audiences_cache
        self._topics = topics_cache

    async def list_audiences(self) -> list[Audience]:
        client = await self._providers.email()
        return await self._audiences.get_or_load("audiences", client.list_audiences)

    async def audience_options(self) -> list[Audience]:
        return audience_options(await self.list_audiences())

    async def list_topics(self) -> list[dict[str, Any]]:
        """Topics, or an empty list when Resend is unconfigured or failing."""
        client = await self._providers.email_or_none()
        if client is None:
            return []
        try:
            return await self._topics.get_or_load("topics", client.list_topics)
        except ProviderError as exc:
            logger.error("Failed to fetch Resend topics: %s", exc)
            return []

    async def create_topic(self, name: str, description: str | None = None) -> dict[str, Any]:
        client = await self._providers.email()
        topic = await client.create_topic(name.strip(), description)
        self._topics.invalidate()
        return {"id": topic.get("id"), "name": name.strip()}


def resend_admin_service_factory_provider(
    factory: ProviderFactory,
) -> Callable[[AsyncSession], ResendAdminService]:
    audiences: TTLCache[list[Audience]] = TTLCache(LISTING_TTL_SECONDS)
    topics: TTLCache[list[dict[str, Any]]] = TTLCache(LISTING_TTL_SECONDS)

    def build(session: AsyncSession) -> ResendAdminService:
        return ResendAdminService(session, ProviderGateway(session, factory), audiences, topics)

    return build
