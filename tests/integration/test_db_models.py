"""Integration tests for database models.

These tests verify:
- Database constraints (uniqueness)
- Default values
- Data integrity
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.db.base import Base
from newsdesk.db.models.config import ApiKey, IngestionConfig
from newsdesk.db.models.content import Article, RssSource, SavedContent
from newsdesk.db.models.delivery import EmailEvent, EmailTemplate, ShortLink, Subscriber
from newsdesk.db.models.newsletter import NewsletterTemplate, Sequence, WeeklyNewsletter
from newsdesk.db.models.user import User


def _unique_email() -> str:
    """Generate a unique email for each test."""
    return f"test_{uuid.uuid4().hex[:8]}@example.com"


def _unique_url() -> str:
    """Generate a unique URL for each test."""
    return f"https://example.com/{uuid.uuid4().hex[:8]}"


class TestConstraints:
    """Test database constraints."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "make",
        [
            pytest.param(
                lambda: User(email="dup@example.com", hashed_password="hashed"), id="user-email"
            ),
            pytest.param(
                lambda: RssSource(name="Feed", url="https://example.com/rss"), id="rss-url"
            ),
            pytest.param(
                lambda: Article(
                    title="Agents ship",
                    source_link="https://example.com/a?utm_source=rss",
                    canonical_link="https://example.com/a",
                ),
                id="article-canonical-link",
            ),
            pytest.param(lambda: Subscriber(email="dup@example.com"), id="subscriber-email"),
            pytest.param(
                lambda: ShortLink(short_code="abc123", target_url=_unique_url()),
                id="short-code",
            ),
            pytest.param(lambda: ApiKey(service="resend", key="encrypted"), id="api-key-service"),
            pytest.param(
                lambda: EmailTemplate(type="welcome", subject="Hi", html="<p>Hi</p>"),
                id="email-template-type",
            ),
            pytest.param(
                lambda: EmailEvent(event_id="evt_1", event_type="email.opened"),
                id="email-event-id",
            ),
        ],
    )
    async def test_uniqueness_constraint(
        self, db_session: AsyncSession, make: Callable[[], Base]
    ) -> None:
        """Test that a second row with the same unique value is rejected."""
        # Arrange
        db_session.add(make())
        await db_session.commit()

        # Act & Assert
        db_session.add(make())
        with pytest.raises(IntegrityError):
            await db_session.commit()

        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_email_events_without_provider_id_are_allowed(
        self, db_session: AsyncSession
    ) -> None:
        """Test that events lacking an id do not collide with each other."""
        db_session.add_all(
            [EmailEvent(event_type="email.sent"), EmailEvent(event_type="email.sent")]
        )
        await db_session.commit()

        result = await db_session.execute(select(EmailEvent))
        assert len(result.scalars().all()) == 2


class TestDefaultValues:
    """Test model default values."""

    @pytest.mark.asyncio
    async def test_subscriber_defaults(self, db_session: AsyncSession) -> None:
        """Test that a new subscriber is active on both lists."""
        # Arrange
        subscriber = Subscriber(email=_unique_email())

        # Act
        db_session.add(subscriber)
        await db_session.commit()
        await db_session.refresh(subscriber)

        # Assert
        assert subscriber.status == "active"
        assert subscriber.daily_enabled is True
        assert subscriber.weekly_enabled is True
        assert subscriber.created_at is not None
        assert subscriber.updated_at is not None

    @pytest.mark.asyncio
    async def test_sequence_defaults(self, db_session: AsyncSession) -> None:
        """Test the schedule defaults of a new sequence."""
        sequence = Sequence(name="Daily")
        db_session.add(sequence)
        await db_session.commit()
        await db_session.refresh(sequence)

        assert sequence.status == "draft"
        assert sequence.time == "09:00"
        assert sequence.timezone == "America/New_York"
        assert sequence.day_of_week == []
        assert sequence.content_sources == []
        assert sequence.last_sent is None

    @pytest.mark.asyncio
    async def test_content_defaults(self, db_session: AsyncSession) -> None:
        """Test feed, saved content and short link defaults."""
        # Arrange
        source = RssSource(name="Feed", url=_unique_url())
        saved = SavedContent(type="recipe", title="Pasta")
        link = ShortLink(short_code="zz9", target_url=_unique_url())

        # Act
        db_session.add_all([source, saved, link])
        await db_session.commit()

        # Assert
        assert source.enabled is True
        assert saved.used is False
        assert saved.used_in_id is None
        assert link.clicks == 0

    @pytest.mark.asyncio
    async def test_template_and_config_defaults(self, db_session: AsyncSession) -> None:
        """Test template, key and ingestion config defaults."""
        template = NewsletterTemplate(name="Plain", html="<p>{{ content }}</p>")
        email_template = EmailTemplate(type="welcome", subject="Hi", html="<p>Hi</p>")
        api_key = ApiKey(service="gemini", key="encrypted")
        ingestion = IngestionConfig()
        db_session.add_all([template, email_template, api_key, ingestion])
        await db_session.commit()

        assert template.is_default is False
        assert template.include_footer is True
        assert email_template.enabled is True
        assert api_key.status == "disconnected"
        assert ingestion.time_frame == 72
        assert ingestion.time == "09:00"
        assert ingestion.schedule == []

    @pytest.mark.asyncio
    async def test_user_and_weekly_defaults(self, db_session: AsyncSession) -> None:
        """Test user role and weekly draft defaults."""
        user = User(email=_unique_email(), hashed_password="hashed")
        weekly = WeeklyNewsletter(week_start=date(2025, 3, 3), week_end=date(2025, 3, 9))
        db_session.add_all([user, weekly])
        await db_session.commit()

        assert user.role == "admin"
        assert len(user.id) == 36
        assert weekly.status == "draft"
        assert weekly.news_items == []
        assert weekly.recipe_ids == []
        assert weekly.sent_at is None


class TestDataIntegrity:
    """Test data integrity and consistency."""

    @pytest.mark.asyncio
    async def test_json_columns_round_trip(self, db_session: AsyncSession) -> None:
        """Test that JSON columns keep their structure."""
        # Arrange
        weekly = WeeklyNewsletter(
            week_start=date(2025, 3, 3),
            week_end=date(2025, 3, 9),
            news_items=[{"title": "Agents ship", "summary": "Big week."}],
            recipe_ids=["r1", "r2"],
        )
        db_session.add(weekly)
        await db_session.commit()
        weekly_id = weekly.id
        db_session.expunge_all()

        # Act
        result = await db_session.execute(
            select(WeeklyNewsletter).where(WeeklyNewsletter.id == weekly_id)
        )
        loaded = result.scalar_one()

        # Assert
        assert loaded.news_items == [{"title": "Agents ship", "summary": "Big week."}]
        assert loaded.recipe_ids == ["r1", "r2"]
        assert loaded.week_start == date(2025, 3, 3)

    @pytest.mark.asyncio
    async def test_ids_are_unique_per_row(self, db_session: AsyncSession) -> None:
        """Test that every row gets its own generated id."""
        articles = [
            Article(title=f"Item {i}", source_link=_unique_url(), canonical_link=_unique_url())
            for i in range(3)
        ]
        db_session.add_all(articles)
        await db_session.commit()

        assert len({article.id for article in articles}) == 3
        assert all(article.created_at is not None for article in articles)
