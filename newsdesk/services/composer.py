"""Newsletter content generation from articles and saved content."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Final

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.db.base import utcnow
from newsdesk.db.models.content import SavedContent
from newsdesk.llm.prompts import fill_prompt
from newsdesk.llm.schemas import ContentLink, NewsletterContent, parse_newsletter_content
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.services.article_source import SourceArticle
from newsdesk.services.rendering import hostname

logger = logging.getLogger(__name__)

READING_WINDOW = timedelta(days=7)
MAX_READING_ITEMS = 5


@dataclass(frozen=True)
class ContentSourceDescription:
    label: str
    json_fields: str
    instruction: str


CONTENT_SOURCE_DESCRIPTIONS: Final[dict[str, ContentSourceDescription]] = {
    "news": ContentSourceDescription(
        label="News",
        json_fields='"featured_story" and "top_stories"',
        instruction=(
            "Select the most impactful articles as a featured story and top stories "
            "with headlines and insights."
        ),
    ),
    "chefs_table": ContentSourceDescription(
        label="Chef's Table",
        json_fields='"intro"',
        instruction=(
            "Write a 2-3 sentence editorial intro (\"Chef's Table\") about today's most "
            "important developments."
        ),
    ),
    "recipes": ContentSourceDescription(
        label="Recipes",
        json_fields='"recipes"',
        instruction=(
            "If any saved social posts or curated articles are provided, include them in a "
            "recipes array with title, summary, and link."
        ),
    ),
    "cooking": ContentSourceDescription(
        label="What We're Cooking",
        json_fields='"looking_ahead"',
        instruction=(
            "Write a \"Looking Ahead\" / \"What We're Cooking\" section with 2-3 sentences "
            "about upcoming trends or things to watch."
        ),
    ),
}

FALLBACK_PROMPT = (
    "Generate a newsletter from these articles:\n\n{articles}\n\n"
    "Return a JSON object with: featuredStory (title, summary, link, imageUrl, category), "
    "topStories (array of 3-4 items with title, summary, link, category), intro (string), "
    "lookingAhead (string)."
)


@dataclass(frozen=True)
class ReadingItem:
    title: str
    url: str
    description: str
    source: str = ""
    created_at: str | None = None

    def to_prompt_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "source": self.source,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class CookingItem:
    title: str
    url: str
    description: str
    created_at: str | None = None

    def to_prompt_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["createdAt"] = data.pop("created_at")
        return data


def build_content_sections_text(content_sources: Sequence[str] | None) -> str:
    """Section instructions substituted for ``{{ $json.content_sections }}``."""
    if not content_sources:
        return "\n".join(
            f"- {desc.label}: {desc.instruction}" for desc in CONTENT_SOURCE_DESCRIPTIONS.values()
        )

    included = [
        f"- {desc.label} ({desc.json_fields}): {desc.instruction}"
        for key in content_sources
        if (desc := CONTENT_SOURCE_DESCRIPTIONS.get(key)) is not None
    ]
    excluded = [
        desc.json_fields
        for key, desc in CONTENT_SOURCE_DESCRIPTIONS.items()
        if key not in content_sources
    ]
    text = "INCLUDE these sections:\n" + "\n".join(included)
    if excluded:
        text += (
            f"\n\nDO NOT include these fields in your JSON output: {', '.join(excluded)}. "
            "Omit them entirely."
        )
    return text


def _wants(content_sources: Sequence[str] | None, source: str) -> bool:
    return not content_sources or source in content_sources


class NewsletterComposer:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._providers = providers
        self._clock = clock

    async def recent_reading_items(self) -> list[ReadingItem]:
        cutoff = self._clock() - READING_WINDOW
        result = await self._session.execute(
            select(SavedContent)
            .where(SavedContent.type == "reading", SavedContent.created_at >= cutoff)
            .order_by(SavedContent.created_at.desc())
            .limit(MAX_READING_ITEMS)
        )
        return [
            ReadingItem(
                title=item.title,
                url=item.url or "",
                description=item.description or "",
                source=hostname(item.url),
                created_at=item.created_at.isoformat() if item.created_at else None,
            )
            for item in result.scalars().all()
        ]

    async def latest_cooking_item(self) -> CookingItem | None:
        result = await self._session.execute(
            select(SavedContent)
            .where(SavedContent.type == "cooking")
            .order_by(SavedContent.created_at.desc())
            .limit(1)
        )
        item = result.scalar_one_or_none()
        if item is None:
            return None
        return CookingItem(
            title=item.title,
            url=item.url or "",
            description=item.description or "",
            created_at=item.created_at.isoformat() if item.created_at else None,
        )

    def build_prompt(
        self,
        articles: Sequence[SourceArticle],
        system_prompt: str,
        user_prompt: str,
        content_sources: Sequence[str] | None,
        reading_items: Sequence[ReadingItem],
        cooking_item: CookingItem | None,
    ) -> str:
        articles_json = json.dumps([article.to_prompt_dict() for article in articles], indent=2)
        if not system_prompt and not user_prompt:
            return FALLBACK_PROMPT.format(articles=articles_json)

        now = self._clock()
        sections = build_content_sections_text(content_sources)
        values = {
            "articles": articles_json,
            "day_start": (now - timedelta(hours=24)).isoformat(),
            "day_end": now.isoformat(),
            "week_start": (now - timedelta(days=7)).isoformat(),
            "week_end": now.isoformat(),
            "total_articles": str(len(articles)),
            "reading_items": json.dumps(
                [item.to_prompt_dict() for item in reading_items], indent=2
            ),
            "cooking_item": json.dumps(
                cooking_item.to_prompt_dict() if cooking_item else {}, indent=2
            ),
            "content_sections": sections,
        }
        system = fill_prompt(system_prompt, {"content_sections": sections})
        user = fill_prompt(user_prompt, values)
        return f"{system}\n\n{user}" if system else user

    async def generate_newsletter_content(
        self,
        articles: Sequence[SourceArticle],
        system_prompt: str,
        user_prompt: str,
        content_sources: Sequence[str] | None = None,
        reading_items: Sequence[ReadingItem] | None = None,
        cooking_item: CookingItem | None = None,
    ) -> NewsletterContent:
        """Ask the model for newsletter JSON and validate it strictly.

        Reading and cooking sections the model leaves out are filled from
        saved content when the sequence asks for them.
        """
        if reading_items is None:
            reading_items = await self.recent_reading_items()
        if cooking_item is None:
            cooking_item = await self.latest_cooking_item()

        prompt = self.build_prompt(
            articles, system_prompt, user_prompt, content_sources, reading_items, cooking_item
        )
        llm = await self._providers.llm()
        content = parse_newsletter_content(await llm.generate_text(prompt))

        if _wants(content_sources, "recipes") and not content.what_were_reading:
            content.what_were_reading = [
                ContentLink(title=item.title, url=item.url, description=item.description)
                for item in reading_items[:MAX_READING_ITEMS]
            ]
        cooking = content.what_were_cooking
        if _wants(content_sources, "cooking") and (cooking is None or not cooking.title):
            content.what_were_cooking = (
                ContentLink(
                    title=cooking_item.title,
                    url=cooking_item.url,
                    description=cooking_item.description,
                )
                if cooking_item
                else None
            )
        logger.info(
            "Generated newsletter content (%d top stories, %d news items)",
            len(content.top_stories),
            len(content.news),
        )
        return content
