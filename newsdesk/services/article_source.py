"""Where newsletter articles come from: Airtable when configured, else local."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.errors import NewsdeskError, ProviderError
from newsdesk.db.base import utcnow
from newsdesk.db.models.content import Article
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.services.schedule import compute_time_frame_hours, day_name

logger = logging.getLogger(__name__)

NoArticlesReason = Literal["source_not_configured", "source_empty"]

AIRTABLE_FIELDS: dict[str, tuple[str, ...]] = {
    "title": ("Title", "Headline", "title"),
    "summary": ("Summary", "AI Summary", "summary"),
    "link": ("Source Link", "Link", "URL", "source_link"),
    "image_url": ("Image Link", "Image", "image_link"),
    "category": ("Category", "category"),
    "why_it_matters": ("Why It Matters", "why_it_matters"),
    "business_value": ("Business Value", "business_value"),
    "creator": ("Creator", "Source", "creator"),
}


class NoArticlesError(NewsdeskError):
    status_code = 400

    def __init__(self, reason: NoArticlesReason, message: str, total_local: int = 0) -> None:
        super().__init__(message, "no_articles", details={"reason": reason})
        self.reason = reason
        self.total_local = total_local


@dataclass
class SourceArticle:
    """An article as the composer sees it, whichever store it came from."""

    id: str
    title: str
    link: str
    summary: str = ""
    image_url: str = ""
    category: str = ""
    why_it_matters: str = ""
    business_value: str = ""
    creator: str = ""

    @classmethod
    def from_model(cls, article: Article) -> SourceArticle:
        return cls(
            id=article.id,
            title=article.title,
            link=article.source_link,
            summary=article.summary or "",
            image_url=article.image_link or "",
            category=article.category or "",
            why_it_matters=article.why_it_matters or "",
            business_value=article.business_value or "",
            creator=article.creator or "",
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> SourceArticle | None:
        values: dict[str, str] = {}
        for field, names in AIRTABLE_FIELDS.items():
            value = next((record[name] for name in names if record.get(name)), "")
            if isinstance(value, list):
                # Attachment fields arrive as [{"url": ...}]
                value = value[0].get("url", "") if value and isinstance(value[0], dict) else ""
            values[field] = str(value).strip()
        if not values["title"] or not values["link"]:
            return None
        return cls(id=str(record.get("id", "")), **values)

    def to_prompt_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "link": self.link,
            "imageUrl": self.image_url,
            "category": self.category,
            "whyItMatters": self.why_it_matters,
            "businessValue": self.business_value,
            "creator": self.creator,
        }


class ArticleSourceResolver:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._providers = providers
        self._clock = clock
        self.source: str | None = None

    async def _from_airtable(self, limit: int) -> tuple[bool, list[SourceArticle]]:
        client = await self._providers.records()
        if client is None:
            return False, []
        try:
            records = await client.fetch_records(max_records=limit)
        except ProviderError as exc:
            logger.warning("Airtable fetch failed, falling back to local articles: %s", exc)
            return True, []
        articles = [SourceArticle.from_record(record) for record in records]
        return True, [article for article in articles if article is not None]

    def lookback_hours(self, day_of_week: list[str] | None) -> int:
        if not day_of_week:
            return 24
        return compute_time_frame_hours(day_of_week, day_name(self._clock()))

    async def recent_local(self, day_of_week: list[str] | None = None) -> list[SourceArticle]:
        cutoff = self._clock() - timedelta(hours=self.lookback_hours(day_of_week))
        result = await self._session.execute(
            select(Article).where(Article.created_at >= cutoff).order_by(Article.created_at.desc())
        )
        return [SourceArticle.from_model(article) for article in result.scalars().all()]

    async def resolve_articles(
        self, day_of_week: list[str] | None = None, limit: int = 20
    ) -> list[SourceArticle]:
        """Airtable rows when configured and non-empty, else recent local articles.

        Raises:
            NoArticlesError: ``source_not_configured`` when nothing has ever been
                ingested and Airtable is not set up, ``source_empty`` otherwise.
        """
        airtable_configured, articles = await self._from_airtable(limit)
        if articles:
            self.source = "airtable"
            return articles

        articles = await self.recent_local(day_of_week)
        if articles:
            self.source = "local"
            return articles

        total_local = await self._session.scalar(select(func.count()).select_from(Article)) or 0
        if not airtable_configured and total_local == 0:
            raise NoArticlesError(
                "source_not_configured",
                "No articles found. Configure Airtable or run the ingestion workflow.",
            )
        raise NoArticlesError(
            "source_empty",
            f"Found {total_local} stored articles but none in the lookback window. "
            "Run ingestion again.",
            total_local=total_local,
        )
