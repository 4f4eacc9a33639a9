"""Branded ``/r/<code>`` short links with click tracking."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Sequence
from typing import Final
from urllib.parse import urlsplit

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.db.models.delivery import ShortLink
from newsdesk.db.session import get_session_maker
from newsdesk.llm.schemas import NewsletterContent, StoryRef
from newsdesk.services.article_source import SourceArticle
from newsdesk.services.rendering import normalize_title

logger = logging.getLogger(__name__)

# No 0, O, I or l
SHORT_CODE_ALPHABET: Final[str] = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
SHORT_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 5
FALLBACK_BASE_URL = "https://cucinalabs.com"


class ShortCodeExhaustedError(RuntimeError):
    pass


def generate_short_code() -> str:
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(SHORT_CODE_LENGTH))


def short_link_url(code: str) -> str:
    base_url = (settings.public_base_url or FALLBACK_BASE_URL).rstrip("/")
    return f"{base_url}/r/{code}"


def is_short_link(value: str | None) -> bool:
    if not value:
        return False
    try:
        path = urlsplit(value).path
    except ValueError:
        return value.startswith("/r/")
    return path.startswith("/r/")


class ShortLinkService:
    def __init__(
        self, session: AsyncSession, code_generator: Callable[[], str] = generate_short_code
    ) -> None:
        self._session = session
        self._generate = code_generator

    async def _find_existing(
        self, target_url: str, article_id: str | None, sequence_id: str | None
    ) -> ShortLink | None:
        query = select(ShortLink).where(ShortLink.target_url == target_url)
        query = query.where(
            ShortLink.article_id.is_(None)
            if article_id is None
            else ShortLink.article_id == article_id
        )
        query = query.where(
            ShortLink.sequence_id.is_(None)
            if sequence_id is None
            else ShortLink.sequence_id == sequence_id
        )
        result = await self._session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def find_by_code(self, code: str) -> ShortLink | None:
        result = await self._session.execute(select(ShortLink).where(ShortLink.short_code == code))
        return result.scalar_one_or_none()

    async def create_short_link(
        self,
        target_url: str,
        article_id: str | None = None,
        sequence_id: str | None = None,
    ) -> str:
        """Return the short URL for ``target_url``, reusing an existing code."""
        existing = await self._find_existing(target_url, article_id, sequence_id)
        if existing is not None:
            return short_link_url(existing.short_code)

        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._generate()
            if await self.find_by_code(code) is None:
                break
        else:
            raise ShortCodeExhaustedError("Failed to generate unique short code")

        link = ShortLink(
            short_code=code,
            target_url=target_url,
            article_id=article_id,
            sequence_id=sequence_id,
        )
        self._session.add(link)
        await self._session.flush()
        return short_link_url(link.short_code)

    async def _shorten(
        self, link: str, article_id: int | str | None, sequence_id: str | None
    ) -> str:
        if is_short_link(link):
            return link
        return await self.create_short_link(
            link, str(article_id) if article_id else None, sequence_id
        )

    async def wrap_with_short_links(
        self,
        content: NewsletterContent,
        articles: Sequence[SourceArticle],
        sequence_id: str | None = None,
    ) -> NewsletterContent:
        """Rewrite every story, reading and cooking link in ``content`` to a short link."""

        def resolve(story: StoryRef) -> str:
            if story.link:
                return story.link
            if story.source_link:
                return story.source_link
            if story.id:
                wanted = str(story.id)
                for article in articles:
                    if article.id == wanted:
                        return article.link
            title = normalize_title(story.display_headline)
            if title:
                for article in articles:
                    if normalize_title(article.title) == title:
                        return article.link
            return ""

        stories = ([content.featured_story] if content.featured_story else []) + list(
            content.top_stories
        )
        for story in stories:
            link = resolve(story)
            if link:
                story.link = await self._shorten(link, story.id, sequence_id)

        for story in content.news:
            link = story.link or story.url
            if link:
                story.link = await self._shorten(link, story.id, sequence_id)

        for item in content.what_were_reading:
            link = item.link or item.url
            if link:
                item.link = item.url = await self._shorten(link, None, sequence_id)

        cooking = content.what_were_cooking
        if cooking is not None:
            link = cooking.link or cooking.url
            if link:
                cooking.link = cooking.url = await self._shorten(link, None, sequence_id)
        return content


async def record_click(code: str) -> None:
    """Increment the click counter in its own transaction."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        await session.execute(
            update(ShortLink)
            .where(ShortLink.short_code == code)
            .values(clicks=ShortLink.clicks + 1)
        )
        await session.commit()
    logger.debug("Recorded click for short link %s", code)


def short_link_service_factory_provider() -> Callable[[AsyncSession], ShortLinkService]:
    def build(session: AsyncSession) -> ShortLinkService:
        return ShortLinkService(session)

    return build
