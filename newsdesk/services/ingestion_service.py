"""Daily ingestion: fetch feeds, let the LLM curate, store new articles."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.db.base import utcnow
from newsdesk.db.models.config import IngestionConfig
from newsdesk.db.models.content import Article, RssSource
from newsdesk.llm.client import LLMServiceError
from newsdesk.llm.prompts import INGESTION_PROMPT, fill_prompt, references
from newsdesk.llm.schemas import LLMParseError, SelectedItem, parse_ingestion_selection
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.feeds import FeedItem, RssFetcher, canonical_link, fallback_image
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.services.activity_service import ActivityLogger
from newsdesk.services.schedule import compute_time_frame_hours, day_name

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "AI Products"
DEFAULT_CREATOR = "AI Curator"


@dataclass(frozen=True)
class IngestionResult:
    processed: int
    selected: int
    stored: int


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class IngestionService:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        fetcher: RssFetcher,
        activity: ActivityLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._providers = providers
        self._fetcher = fetcher
        self._activity = activity or ActivityLogger(session)
        self._clock = clock

    async def get_config(self) -> IngestionConfig | None:
        result = await self._session.execute(select(IngestionConfig).limit(1))
        return result.scalar_one_or_none()

    async def save_config(
        self, *, schedule: list[str], time: str, timezone: str, time_frame: int
    ) -> IngestionConfig:
        config = await self.get_config()
        if config is None:
            config = IngestionConfig(system_prompt="", user_prompt=INGESTION_PROMPT)
            self._session.add(config)
        config.schedule = [day.lower() for day in schedule]
        config.time = time
        config.timezone = timezone
        config.time_frame = time_frame
        await self._session.flush()
        await self._activity.log(
            "ingestion.config.saved", "Ingestion configuration saved.", "success"
        )
        return config

    async def reset_prompts(self) -> IngestionConfig:
        config = await self.get_config()
        if config is None:
            config = IngestionConfig(
                schedule=["monday", "tuesday", "wednesday", "thursday", "friday"],
                time="09:00",
                timezone="America/New_York",
                time_frame=72,
            )
            self._session.add(config)
        config.system_prompt = ""
        config.user_prompt = INGESTION_PROMPT
        await self._session.flush()
        await self._activity.log(
            "ingestion.prompts.reset", "Ingestion prompts reset to defaults.", "success"
        )
        return config

    async def scheduled_time_frame(self) -> int:
        """Lookback for the cron run: gap to the previous scheduled day, else 24h."""
        config = await self.get_config()
        if config is None or not config.schedule:
            return 24
        return compute_time_frame_hours(config.schedule, day_name(self._clock()))

    async def _fetch_candidates(self, sources: list[RssSource]) -> list[FeedItem]:
        candidates: list[FeedItem] = []
        for source in sources:
            try:
                items = await self._fetcher.fetch(source.url)
            except httpx.HTTPError as exc:
                logger.warning("Failed to fetch RSS feed %s: %s", source.url, exc)
                await self._activity.log(
                    "ingestion.feed.error",
                    f"Failed to fetch feed {source.name}.",
                    "warning",
                    {"sourceId": source.id, "url": source.url, "error": str(exc)},
                )
                continue
            for item in items:
                item.category = source.category or item.category
                item.creator = source.name or item.creator
            candidates.extend(items)
        return candidates

    def _build_prompt(
        self, candidates: list[FeedItem], system_prompt: str, user_prompt: str
    ) -> str:
        articles_json = json.dumps([item.to_prompt_dict() for item in candidates], indent=2)
        body = fill_prompt(
            user_prompt,
            {"articles": articles_json, "total_articles": str(len(candidates))},
        )
        if not references(user_prompt, "articles"):
            body = f"{body}\n\nArticles:\n{articles_json}"
        return f"{system_prompt}\n\n{body}" if system_prompt else body

    @staticmethod
    def _match(selected: SelectedItem, candidates: list[FeedItem]) -> FeedItem | None:
        wanted = canonical_link(selected.source_link)
        for candidate in candidates:
            if canonical_link(candidate.link) == wanted:
                return candidate
        for candidate in candidates:
            if candidate.title == selected.title:
                return candidate
        return None

    def _to_article(self, selected: SelectedItem, base: FeedItem | None) -> Article:
        link = base.link if base else selected.source_link
        category = selected.category or (base.category if base else None) or DEFAULT_CATEGORY
        image = selected.image_link or (base.image_url if base else None)
        published = (
            (base.published_at if base else None)
            or _parse_datetime(selected.published_date)
            or self._clock()
        )
        return Article(
            title=base.title if base else selected.title,
            source_link=link,
            canonical_link=canonical_link(link),
            image_link=image or fallback_image(category),
            summary=selected.ai_generated_summary or "",
            why_it_matters=selected.why_it_matters or "",
            business_value=selected.business_value or "",
            category=category,
            creator=selected.creator or (base.creator if base else None) or DEFAULT_CREATOR,
            published_at=published,
        )

    async def _store(self, articles: list[Article]) -> int:
        links = {article.canonical_link for article in articles}
        existing = await self._session.execute(
            select(Article.canonical_link).where(Article.canonical_link.in_(links))
        )
        seen = set(existing.scalars().all())
        stored = 0
        for article in articles:
            if article.canonical_link in seen:
                continue
            seen.add(article.canonical_link)
            self._session.add(article)
            stored += 1
        await self._session.flush()
        return stored

    async def run_ingestion(
        self,
        time_frame_hours: int = 24,
        system_prompt: str | None = None,
        user_prompt: str | None = None,
    ) -> IngestionResult:
        """Run one ingestion pass.

        Feed failures are logged and skipped. An LLM failure or an
        unparsable selection aborts the run.
        """
        result = await self._session.execute(
            select(RssSource).where(RssSource.enabled.is_(True)).order_by(RssSource.created_at)
        )
        sources = list(result.scalars().all())
        if not sources:
            logger.info("No enabled RSS sources; nothing to ingest")
            return IngestionResult(processed=0, selected=0, stored=0)

        cutoff = self._clock() - timedelta(hours=time_frame_hours)
        candidates = [
            item
            for item in await self._fetch_candidates(sources)
            if item.published_at is None or item.published_at >= cutoff
        ]
        if not candidates:
            await self._activity.log(
                "ingestion.completed",
                "Ingestion found no recent articles.",
                "warning",
                {"processed": 0, "selected": 0, "stored": 0, "timeFrame": time_frame_hours},
            )
            return IngestionResult(processed=0, selected=0, stored=0)

        config = await self.get_config()
        if system_prompt is None and config is not None:
            system_prompt = config.system_prompt
        if user_prompt is None and config is not None:
            user_prompt = config.user_prompt
        prompt = self._build_prompt(
            candidates, system_prompt or "", user_prompt or INGESTION_PROMPT
        )

        llm = await self._providers.llm()
        try:
            selection = parse_ingestion_selection(await llm.generate_text(prompt))
        except (LLMParseError, LLMServiceError) as exc:
            details: dict[str, Any] = {"error": str(exc), "errorCode": exc.error_code}
            if isinstance(exc, LLMParseError):
                details["reason"] = exc.reason
            await self._activity.log(
                "ingestion.failed", "Article selection failed.", "error", details
            )
            raise

        articles = [
            self._to_article(item, self._match(item, candidates)) for item in selection.items
        ]
        stored = await self._store(articles) if articles else 0

        outcome = IngestionResult(processed=len(candidates), selected=len(articles), stored=stored)
        await self._activity.log(
            "ingestion.completed",
            f"Processed {outcome.processed}, selected {outcome.selected}, stored {outcome.stored}.",
            "success",
            {
                "processed": outcome.processed,
                "selected": outcome.selected,
                "stored": outcome.stored,
                "timeFrame": time_frame_hours,
            },
        )
        return outcome

    async def run_tracked(
        self,
        trigger: str,
        time_frame_hours: int | None = None,
        system_prompt: str | None = None,
        user_prompt: str | None = None,
    ) -> tuple[IngestionResult, int]:
        """Run ingestion with ``ingestion.<trigger>.*`` activity entries around it.

        The cron trigger derives its lookback from the configured schedule.
        Failures are recorded and re-raised.
        """
        if time_frame_hours is None:
            time_frame_hours = await self.scheduled_time_frame()
        await self._activity.log(
            f"ingestion.{trigger}.start",
            f"{trigger.capitalize()} ingestion started.",
            "info",
            {"timeFrame": time_frame_hours},
        )
        try:
            outcome = await self.run_ingestion(time_frame_hours, system_prompt, user_prompt)
        except Exception as exc:
            logger.error("%s ingestion failed: %s", trigger.capitalize(), exc)
            await self._activity.log(
                f"ingestion.{trigger}.error",
                f"{trigger.capitalize()} ingestion failed.",
                "error",
                {"error": str(exc)},
            )
            raise
        await self._activity.log(
            f"ingestion.{trigger}.success",
            f"{trigger.capitalize()} ingestion completed. Processed {outcome.processed}, "
            f"selected {outcome.selected}, stored {outcome.stored}.",
            "success",
            {
                "timeFrame": time_frame_hours,
                "processed": outcome.processed,
                "selected": outcome.selected,
                "stored": outcome.stored,
            },
        )
        return outcome, time_frame_hours


def ingestion_service_factory_provider(
    factory: ProviderFactory,
) -> Callable[[AsyncSession], IngestionService]:
    def build(session: AsyncSession) -> IngestionService:
        return IngestionService(session, ProviderGateway(session, factory), factory.feeds())

    return build
