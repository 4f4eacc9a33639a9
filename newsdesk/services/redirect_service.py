"""Open-redirect protection for ``/api/redirect`` links in sent emails."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from urllib.parse import urlsplit

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.cache import TTLCache
from newsdesk.core.config import settings
from newsdesk.db.models.content import Article, RssSource
from newsdesk.db.models.delivery import ShortLink

logger = logging.getLogger(__name__)

DYNAMIC_HOSTS_TTL_SECONDS = 600
_DYNAMIC_HOSTS_KEY = "hosts"

STATIC_ALLOWED_HOSTS: frozenset[str] = frozenset(
    {
        "cucinalabs.com",
        "anthropic.com",
        "openai.com",
        "blog.google",
        "deepmind.google",
        "ai.meta.com",
        "huggingface.co",
        "github.com",
        "techcrunch.com",
        "theverge.com",
        "wired.com",
        "arstechnica.com",
        "venturebeat.com",
        "technologyreview.com",
        "news.ycombinator.com",
        "substack.com",
        "medium.com",
        "linkedin.com",
        "x.com",
        "twitter.com",
        "youtube.com",
    }
)


def host_of(url: str | None) -> str | None:
    if not url:
        return None
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def host_matches(host: str, allowed: Iterable[str]) -> bool:
    """Exact match, or ``host`` is a subdomain of an allowed host."""
    return any(host == item or host.endswith(f".{item}") for item in allowed)


class RedirectService:
    def __init__(self, session: AsyncSession, cache: TTLCache[frozenset[str]]) -> None:
        self._session = session
        self._cache = cache

    async def _load_dynamic_hosts(self) -> frozenset[str]:
        urls: list[str | None] = []
        for column in (RssSource.url, Article.source_link, ShortLink.target_url):
            result = await self._session.execute(select(column).distinct())
            urls.extend(result.scalars().all())
        urls.append(settings.public_base_url)
        hosts = frozenset(host for host in map(host_of, urls) if host)
        logger.debug("Loaded %d redirect hosts", len(hosts))
        return hosts

    async def dynamic_hosts(self) -> frozenset[str]:
        return await self._cache.get_or_load(_DYNAMIC_HOSTS_KEY, self._load_dynamic_hosts)

    async def is_allowed(self, url: str | None) -> bool:
        if not url:
            return False
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return False
        if parts.scheme.lower() != "https":
            return False
        host = host_of(url)
        if host is None:
            return False
        if host_matches(host, STATIC_ALLOWED_HOSTS):
            return True
        return host_matches(host, await self.dynamic_hosts())


def redirect_service_factory_provider(
    cache: TTLCache[frozenset[str]] | None = None,
) -> Callable[[AsyncSession], RedirectService]:
    shared = cache or TTLCache[frozenset[str]](DYNAMIC_HOSTS_TTL_SECONDS)

    def build(session: AsyncSession) -> RedirectService:
        return RedirectService(session, shared)

    return build
