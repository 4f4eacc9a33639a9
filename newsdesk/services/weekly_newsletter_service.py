"""The hand-curated weekly newsletter: one draft per Monday-start week."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence as Seq
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.errors import ConflictError, NewsdeskError, NotFoundError, ProviderError
from newsdesk.db.base import utcnow
from newsdesk.db.models.content import Article, SavedContent
from newsdesk.db.models.newsletter import WeeklyNewsletter
from newsdesk.llm.prompts import fill_prompt
from newsdesk.llm.schemas import (
    LLMParseError,
    StoryRef,
    parse_json_object,
    parse_weekly_selection,
)
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.providers.resend import OutgoingEmail
from newsdesk.services.distribution_service import BroadcastError
from newsdesk.services.email_footer import append_email_footer
from newsdesk.services.prompt_service import PromptService
from newsdesk.services.rendering import WEEKLY_NEWSLETTER_TEMPLATE, hostname, render_builtin

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)
MAX_NEWS_ITEMS = 3
MAX_FETCHED_NEWS = 10
MAX_WEEKLY_ARTICLES = 120
MAX_READING_ITEMS = 5
DEFAULT_CHEFS_TABLE_BODY = (
    "Hey Chefs! Here's the weekly menu and the ideas worth bringing into your product work."
)
CHEFS_TABLE_SYSTEM_PROMPT = (
    "You are the editor of cucina labs weekly newsletter. Write clearly for Product Managers "
    "and business operators exploring AI products. Keep the kitchen metaphor light and natural."
)
EDITABLE_FIELDS = frozenset(
    {
        "chefs_table_title",
        "chefs_table_body",
        "news_items",
        "recipe_ids",
        "cooking_items",
        "status",
        "audience_id",
        "subject",
    }
)


class WeeklySendError(NewsdeskError):
    status_code = 400


@dataclass(frozen=True)
class WeeklyItem:
    title: str
    url: str
    description: str
    source: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class WeeklySendResult:
    type: str
    email_id: str | None = None
    to: str | None = None
    broadcast_id: str | None = None
    audience_id: str | None = None


def week_bounds(moment: date) -> tuple[date, date]:
    start = moment - timedelta(days=moment.weekday())
    return start, start + timedelta(days=6)


def _long_date(value: date, with_year: bool = True) -> str:
    text = f"{value.strftime('%B')} {value.day}"
    return f"{text}, {value.year}" if with_year else text


def _news_entry(item: dict[str, Any]) -> dict[str, str]:
    """Accept the capitalized keys records sources hand back."""
    return {
        "title": item.get("title") or item.get("Title") or "",
        "url": item.get("url") or item.get("URL") or item.get("Link") or "",
        "summary": item.get("summary") or item.get("Summary") or item.get("Description") or "",
        "source": item.get("source") or item.get("Source") or "",
    }


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _newest_first(items: Seq[WeeklyItem]) -> list[WeeklyItem]:
    return sorted(
        items,
        key=lambda item: _aware(item.created_at).timestamp() if item.created_at else 0.0,
        reverse=True,
    )


class WeeklyNewsletterService:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._providers = providers
        self._clock = clock

    async def _find_week(self, week_start: date) -> WeeklyNewsletter | None:
        result = await self._session.execute(
            select(WeeklyNewsletter).where(WeeklyNewsletter.week_start == week_start).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_newsletters(self, status: str | None = None) -> list[WeeklyNewsletter]:
        statement = select(WeeklyNewsletter).order_by(WeeklyNewsletter.week_start.desc())
        if status:
            statement = statement.where(WeeklyNewsletter.status == status)
        result = await self._session.execute(statement)
        return list(result.scalars().all())

    async def get(self, newsletter_id: str) -> WeeklyNewsletter:
        newsletter = await self._session.get(WeeklyNewsletter, newsletter_id)
        if newsletter is None:
            raise NotFoundError("Newsletter not found")
        return newsletter

    async def get_or_create_current(self) -> WeeklyNewsletter:
        start, end = week_bounds(self._clock().date())
        newsletter = await self._find_week(start)
        if newsletter is None:
            newsletter = WeeklyNewsletter(week_start=start, week_end=end, status="draft")
            self._session.add(newsletter)
            await self._session.flush()
        return newsletter

    async def create(self, week_of: date | None = None) -> WeeklyNewsletter:
        start, end = week_bounds(week_of or self._clock().date())
        existing = await self._find_week(start)
        if existing is not None:
            raise ConflictError(
                "Newsletter already exists for this week", details={"id": existing.id}
            )
        newsletter = WeeklyNewsletter(week_start=start, week_end=end, status="draft")
        self._session.add(newsletter)
        await self._session.flush()
        return newsletter

    async def recipes_for(self, newsletter: WeeklyNewsletter) -> list[SavedContent]:
        if not newsletter.recipe_ids:
            return []
        result = await self._session.execute(
            select(SavedContent).where(SavedContent.id.in_(newsletter.recipe_ids))
        )
        return list(result.scalars().all())

    async def _mark_recipes(self, recipe_ids: list[str], used_in_id: str | None) -> None:
        if not recipe_ids:
            return
        await self._session.execute(
            update(SavedContent)
            .where(SavedContent.id.in_(recipe_ids))
            .values(used=used_in_id is not None, used_in_id=used_in_id)
        )

    async def update(self, newsletter_id: str, **changes: Any) -> WeeklyNewsletter:
        """Apply the given fields; attached recipes are marked used, detached ones released."""
        newsletter = await self.get(newsletter_id)
        previous = list(newsletter.recipe_ids or [])
        for field, value in changes.items():
            if field in EDITABLE_FIELDS:
                setattr(newsletter, field, value)

        if "recipe_ids" in changes and changes["recipe_ids"] is not None:
            current = list(changes["recipe_ids"])
            await self._mark_recipes([rid for rid in previous if rid not in current], None)
            await self._mark_recipes(current, newsletter.id)
        await self._session.flush()
        return newsletter

    async def delete(self, newsletter_id: str) -> None:
        newsletter = await self.get(newsletter_id)
        await self._session.execute(
            update(SavedContent)
            .where(SavedContent.used_in_id == newsletter.id)
            .values(used=False, used_in_id=None)
        )
        await self._session.delete(newsletter)
        await self._session.flush()

    async def _saved(self, content_type: str) -> list[WeeklyItem]:
        result = await self._session.execute(
            select(SavedContent)
            .where(SavedContent.type == content_type)
            .order_by(SavedContent.created_at.desc())
        )
        return [self._item(row) for row in result.scalars().all()]

    @staticmethod
    def _item(row: SavedContent) -> WeeklyItem:
        return WeeklyItem(
            title=row.title,
            url=row.url or "",
            description=row.description or "",
            source=hostname(row.url),
            created_at=row.created_at,
        )

    async def _sections(
        self, newsletter: WeeklyNewsletter
    ) -> tuple[list[WeeklyItem], list[WeeklyItem]]:
        """Reading items from the last week (selected recipes first) and one cooking item."""
        selected = [self._item(row) for row in await self.recipes_for(newsletter)]
        pool = selected or await self._saved("reading")
        cutoff = self._clock() - RECENT_WINDOW
        reading = [
            item
            for item in _newest_first(pool)
            if item.created_at is not None and _aware(item.created_at) >= cutoff
        ][:MAX_READING_ITEMS]

        if newsletter.cooking_items:
            cooking_pool = [
                WeeklyItem(
                    title=str(item.get("title") or ""),
                    url=str(item.get("url") or ""),
                    description=str(item.get("description") or ""),
                    created_at=_as_datetime(item.get("createdAt") or item.get("created_at")),
                )
                for item in newsletter.cooking_items
            ]
        else:
            cooking_pool = await self._saved("cooking")
        return reading, _newest_first(cooking_pool)[:1]

    async def build_context(
        self, newsletter: WeeklyNewsletter, origin: str | None = None
    ) -> dict[str, Any]:
        reading, cooking = await self._sections(newsletter)
        base_url = origin if origin is not None else settings.public_base_url
        return {
            "week_of": _long_date(newsletter.week_start),
            "chefs_table": {
                "title": newsletter.chefs_table_title or None,
                "body": newsletter.chefs_table_body or DEFAULT_CHEFS_TABLE_BODY,
            },
            "news": [_news_entry(item) for item in (newsletter.news_items or [])][
                :MAX_NEWS_ITEMS
            ],
            "reading": [
                {
                    "title": item.title,
                    "url": item.url,
                    "description": item.description,
                    "source": item.source,
                }
                for item in reading
            ],
            "cooking": [
                {"title": item.title, "url": item.url, "description": item.description}
                for item in cooking
            ],
            "unsubscribe_url": f"{base_url}/unsubscribe" if base_url else "/unsubscribe",
            "banner_url": f"{base_url}/video-background-2-still.png",
            "current_year": self._clock().year,
            "business_name": settings.business_name,
        }

    async def render(self, newsletter: WeeklyNewsletter, origin: str | None = None) -> str:
        context = await self.build_context(newsletter, origin)
        return render_builtin(WEEKLY_NEWSLETTER_TEMPLATE, context)

    async def preview(self, newsletter_id: str, origin: str | None = None) -> str:
        return await self.render(await self.get(newsletter_id), origin)

    async def _recent_articles(self) -> list[Article]:
        cutoff = self._clock() - RECENT_WINDOW
        result = await self._session.execute(
            select(Article)
            .where(Article.created_at >= cutoff)
            .order_by(Article.created_at.desc())
            .limit(MAX_WEEKLY_ARTICLES)
        )
        return list(result.scalars().all())

    @staticmethod
    def _prompt_article(position: int, article: Article) -> dict[str, Any]:
        return {
            "id": position,
            "article_id": article.id,
            "title": article.title,
            "creator": article.creator or "",
            "category": article.category or "",
            "ai_generated_summary": article.summary or "",
            "why_it_matters": article.why_it_matters or "",
            "business_value": article.business_value or "",
            "published_date": article.published_at.isoformat() if article.published_at else "",
            "source_link": article.source_link,
            "image_link": article.image_link or "",
        }

    @staticmethod
    def _news_from_article(article: Article) -> dict[str, str]:
        return {
            "id": article.id,
            "title": article.title,
            "url": article.source_link,
            "summary": article.why_it_matters or article.summary or "",
            "source": article.creator or hostname(article.source_link),
        }

    @staticmethod
    def _news_from_story(story: StoryRef, article: Article | None) -> dict[str, str] | None:
        title = story.display_headline or (article.title if article else "")
        url = story.resolved_link or (article.source_link if article else "")
        if not title or not url:
            return None
        return {
            "id": article.id if article else str(story.id or ""),
            "title": title,
            "url": url,
            "summary": story.why_this_matters or story.summary or "",
            "source": story.source or hostname(url),
        }

    async def fetch_news(self, limit: int = MAX_NEWS_ITEMS) -> list[dict[str, str]]:
        """Let the model pick this week's top stories from the last seven days of articles.

        Nothing is stored; the picks are meant to be copied into a draft's news items.
        When the model's picks are unusable the newest articles are returned instead.
        """
        limit = min(max(limit, 1), MAX_FETCHED_NEWS)
        articles = await self._recent_articles()
        if not articles:
            return []

        now = self._clock()
        template = await PromptService(self._session).weekly_update_prompt()
        prompt = fill_prompt(
            template,
            {
                "week_start": (now - RECENT_WINDOW).isoformat(),
                "week_end": now.isoformat(),
                "total_articles": str(len(articles)),
                "articles": json.dumps(
                    [self._prompt_article(i, a) for i, a in enumerate(articles, start=1)],
                    indent=2,
                ),
                "reading_items": "[]",
                "cooking_item": "{}",
            },
        )
        llm = await self._providers.llm()
        stories = parse_weekly_selection(await llm.generate_text(prompt))

        # Prompt ids are 1-based positions in the article list
        by_position = {str(i): a for i, a in enumerate(articles, start=1)}
        items = [
            item
            for story in stories
            if (item := self._news_from_story(story, by_position.get(str(story.id))))
        ][:limit]
        if not items:
            logger.info("Weekly news selection was empty, using the newest articles")
            items = [self._news_from_article(article) for article in articles[:limit]]
        return items

    async def generate_chefs_table(
        self, newsletter_id: str, custom_prompt: str | None = None
    ) -> WeeklyNewsletter:
        """Draft the "From the Chef's Table" intro from this week's material."""
        newsletter = await self.get(newsletter_id)
        reading, cooking = await self._sections(newsletter)
        news_lines = "\n".join(
            f"- {entry['title']}: {entry['summary']}"
            for entry in map(_news_entry, newsletter.news_items or [])
        )
        reading_lines = "\n".join(f"- {item.title}: {item.description}" for item in reading)
        cooking_lines = "\n".join(f"- {item.title}: {item.description}" for item in cooking)
        user_prompt = custom_prompt or (
            f"Write the \"From the Chef's Table\" section for our weekly newsletter dated "
            f"{_long_date(newsletter.week_start)}. Return ONLY valid JSON with this exact shape: "
            '{ "title": "optional short title", "body": "2-4 sentence intro paragraph" }.\n\n'
            "Here's what we have this week:\n\n"
            f"NEWS FROM THE AI WORLD:\n{news_lines or 'No news items yet'}\n\n"
            f"WHAT WE'RE READING (Saved reading items):\n"
            f"{reading_lines or 'No reading items saved yet'}\n\n"
            f"WHAT WE'RE COOKING:\n{cooking_lines or 'No experiments listed yet'}\n\n"
            "Keep the intro warm, practical, and plain-language. Do not use hype or jargon."
        )

        llm = await self._providers.llm()
        raw = await llm.generate_text(f"{CHEFS_TABLE_SYSTEM_PROMPT}\n\n{user_prompt}")
        try:
            payload = parse_json_object(raw)
        except LLMParseError:
            logger.warning("Chef's Table response was not JSON, storing it as plain text")
            newsletter.chefs_table_title = None
            newsletter.chefs_table_body = raw.strip()
        else:
            newsletter.chefs_table_title = payload.get("title") or None
            newsletter.chefs_table_body = (
                payload.get("body") or payload.get("intro") or payload.get("content") or raw
            )
        await self._session.flush()
        return newsletter

    async def send(
        self, newsletter_id: str, test_email: str | None = None, origin: str | None = None
    ) -> WeeklySendResult:
        """Send a ``[TEST]`` copy to one address, or broadcast to the newsletter's audience."""
        newsletter = await self.get(newsletter_id)
        client = await self._providers.email()
        sender = str(await self._providers.sender())
        html = await self.render(newsletter, origin)
        subject = f"What's Cookin' - Week of {_long_date(newsletter.week_start, with_year=False)}"

        if test_email:
            email = test_email.strip().lower()
            email_id = await client.send_email(
                OutgoingEmail(
                    sender=sender,
                    to=[email],
                    subject=f"[TEST] {subject}",
                    html=append_email_footer(html, email, origin or ""),
                )
            )
            return WeeklySendResult(type="test", email_id=email_id, to=email)

        audience_id = newsletter.audience_id
        if not audience_id:
            raise WeeklySendError(
                "No audience configured for this newsletter", "audience_missing"
            )
        try:
            broadcast_id = await client.create_broadcast(
                name=f"Weekly: {subject}",
                audience_id=audience_id,
                sender=sender,
                subject=subject,
                html=append_email_footer(html, "", include_unsubscribe=False),
            )
        except (ProviderError, ValueError) as exc:
            raise BroadcastError("create", str(exc)) from exc
        try:
            await client.send_broadcast(broadcast_id)
        except ProviderError as exc:
            error = BroadcastError("send", str(exc))
            error.details = {"step": "send", "broadcastId": broadcast_id}
            raise error from exc

        newsletter.status = "sent"
        newsletter.sent_at = self._clock()
        await self._mark_recipes(list(newsletter.recipe_ids or []), newsletter.id)
        await self._session.flush()
        logger.info("Weekly newsletter %s broadcast as %s", newsletter.id, broadcast_id)
        return WeeklySendResult(
            type="broadcast", broadcast_id=broadcast_id, audience_id=audience_id
        )


def weekly_newsletter_service_factory_provider(
    factory: ProviderFactory,
) -> Callable[[AsyncSession], WeeklyNewsletterService]:
    def build(session: AsyncSession) -> WeeklyNewsletterService:
        return WeeklyNewsletterService(session, ProviderGateway(session, factory))

    return build
