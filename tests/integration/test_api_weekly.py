"""Integration tests for the weekly newsletter editor."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select

from newsdesk.db.base import utcnow
from newsdesk.db.models.content import Article, SavedContent
from newsdesk.db.models.newsletter import WeeklyNewsletter
from newsdesk.db.session import get_session_maker
from newsdesk.services.weekly_newsletter_service import week_bounds
from tests.conftest import FakeLLM, FakeProviderApi

BASE = "/api/weekly-newsletter"


async def _create(client: AsyncClient, headers: dict[str, str], week: str = "2025-03-05") -> str:
    response = await client.post(BASE, json={"weekStart": week}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return str(response.json()["id"])


async def _saved(client: AsyncClient, headers: dict[str, str], title: str) -> str:
    response = await client.post(
        "/api/saved-content",
        json={"type": "reading", "title": title, "url": "https://example.com/read"},
        headers=headers,
    )
    return str(response.json()["id"])


async def _stored_recipe(item_id: str) -> SavedContent:
    async with get_session_maker()() as session:
        result = await session.execute(select(SavedContent).where(SavedContent.id == item_id))
        return result.scalar_one()


def test_week_bounds_run_monday_to_sunday() -> None:
    """Test that any day maps onto its Monday-start week."""
    assert week_bounds(date(2025, 3, 5)) == (date(2025, 3, 3), date(2025, 3, 9))
    assert week_bounds(date(2025, 3, 3)) == (date(2025, 3, 3), date(2025, 3, 9))
    assert week_bounds(date(2025, 3, 9)) == (date(2025, 3, 3), date(2025, 3, 9))


class TestWeeklyDrafts:
    """Test creating and editing drafts."""

    @pytest.mark.asyncio
    async def test_create_normalizes_to_monday(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test that any date lands on its week's Monday."""
        response = await async_http_client.post(
            BASE, json={"weekStart": "2025-03-05"}, headers=auth_headers
        )

        body = response.json()
        assert body["weekStart"] == "2025-03-03"
        assert body["weekEnd"] == "2025-03-09"
        assert body["status"] == "draft"

    @pytest.mark.asyncio
    async def test_one_newsletter_per_week(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test the conflict carries the existing id."""
        newsletter_id = await _create(async_http_client, auth_headers)

        response = await async_http_client.post(
            BASE, json={"weekStart": "2025-03-07"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["details"] == {"id": newsletter_id}

    @pytest.mark.asyncio
    async def test_current_creates_this_week(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test that ``current=true`` is idempotent."""
        first = await async_http_client.get(BASE, params={"current": "true"}, headers=auth_headers)
        second = await async_http_client.get(
            BASE, params={"current": "true"}, headers=auth_headers
        )

        assert first.json()["id"] == second.json()["id"]
        assert first.json()["recipes"] == []

    @pytest.mark.asyncio
    async def test_recipes_are_marked_and_released(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test that attaching marks items used and swapping releases the old one."""
        # Arrange
        newsletter_id = await _create(async_http_client, auth_headers)
        first = await _saved(async_http_client, auth_headers, "First read")
        second = await _saved(async_http_client, auth_headers, "Second read")

        # Act
        attached = await async_http_client.patch(
            f"{BASE}/{newsletter_id}", json={"recipeIds": [first]}, headers=auth_headers
        )
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}", json={"recipeIds": [second]}, headers=auth_headers
        )

        # Assert
        assert [recipe["id"] for recipe in attached.json()["recipes"]] == [first]
        released = await _stored_recipe(first)
        assert (released.used, released.used_in_id) == (False, None)
        used = await _stored_recipe(second)
        assert (used.used, used.used_in_id) == (True, newsletter_id)

    @pytest.mark.asyncio
    async def test_delete_releases_recipes(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test that deleting a draft frees its recipes."""
        newsletter_id = await _create(async_http_client, auth_headers)
        recipe = await _saved(async_http_client, auth_headers, "A read")
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}", json={"recipeIds": [recipe]}, headers=auth_headers
        )

        response = await async_http_client.delete(f"{BASE}/{newsletter_id}", headers=auth_headers)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert (await _stored_recipe(recipe)).used is False


class TestChefsTable:
    """Test the generated intro."""

    @pytest.mark.asyncio
    async def test_json_answer_sets_title_and_body(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test a structured answer."""
        # Arrange
        newsletter_id = await _create(async_http_client, auth_headers)
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}",
            json={"newsItems": [{"Title": "Agents ship", "Summary": "Big week."}]},
            headers=auth_headers,
        )
        fake_llm.queue({"title": "A busy kitchen", "body": "Lots cooking this week."})

        # Act
        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/generate", headers=auth_headers
        )

        # Assert
        assert response.json()["generated"] == {
            "title": "A busy kitchen",
            "body": "Lots cooking this week.",
        }
        assert "- Agents ship: Big week." in fake_llm.prompts[0]
        assert "March 3, 2025" in fake_llm.prompts[0]

    @pytest.mark.asyncio
    async def test_plain_text_answer_is_kept(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test that prose is stored as the body."""
        newsletter_id = await _create(async_http_client, auth_headers)
        fake_llm.queue("  Welcome back, chefs.  ")

        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/generate",
            json={"customPrompt": "Say hi"},
            headers=auth_headers,
        )

        assert response.json()["generated"] == {"title": None, "body": "Welcome back, chefs."}
        assert fake_llm.prompts[0].endswith("Say hi")


class TestWeeklyPreviewAndSend:
    """Test rendering and delivery."""

    @pytest.mark.asyncio
    async def test_preview(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test the rendered html and its context."""
        newsletter_id = await _create(async_http_client, auth_headers)
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}",
            json={"chefsTableBody": "Hello chefs", "newsItems": [{"title": "Story"}]},
            headers=auth_headers,
        )

        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/preview",
            json={"origin": "https://preview.example.com"},
            headers=auth_headers,
        )

        body = response.json()
        assert "Hello chefs" in body["html"]
        assert body["context"]["week_of"] == "March 3, 2025"
        assert body["context"]["unsubscribe_url"] == "https://preview.example.com/unsubscribe"

    @pytest.mark.asyncio
    async def test_test_send(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test that a test copy goes to one address and leaves the draft alone."""
        newsletter_id = await _create(async_http_client, auth_headers)

        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/send",
            json={"testEmail": "qa@example.com"},
            headers=auth_headers,
        )

        assert response.json()["type"] == "test"
        (email,) = provider_api.sent_payloads("POST", "/emails")
        assert email["subject"] == "[TEST] What's Cookin' - Week of March 3"
        assert "CAN-SPAM footer" in email["html"]

    @pytest.mark.asyncio
    async def test_broadcast_requires_audience(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test the missing-audience error."""
        newsletter_id = await _create(async_http_client, auth_headers)

        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/send", json={}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "audience_missing"

    @pytest.mark.asyncio
    async def test_broadcast_marks_sent(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test the broadcast path."""
        # Arrange
        newsletter_id = await _create(async_http_client, auth_headers)
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}", json={"audienceId": "aud_weekly"}, headers=auth_headers
        )

        # Act
        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/send", headers=auth_headers
        )

        # Assert
        body = response.json()
        assert body["type"] == "broadcast"
        assert body["audienceId"] == "aud_weekly"
        (broadcast,) = provider_api.sent_payloads("POST", "/broadcasts")
        assert broadcast["name"] == "Weekly: What's Cookin' - Week of March 3"
        assert "/unsubscribe?" not in broadcast["html"]
        async with get_session_maker()() as session:
            stored = await session.get(WeeklyNewsletter, newsletter_id)
            assert stored is not None
            assert stored.status == "sent"
            assert stored.sent_at is not None

    @pytest.mark.asyncio
    async def test_broadcast_create_failure_names_the_step(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test that a rejected broadcast leaves the draft unsent."""
        # Arrange
        newsletter_id = await _create(async_http_client, auth_headers)
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}", json={"audienceId": "aud_weekly"}, headers=auth_headers
        )
        provider_api.failures[("POST", "/broadcasts")] = (422, "Audience not found")

        # Act
        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/send", headers=auth_headers
        )

        # Assert
        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        body = response.json()
        assert body["error"] == "broadcast_failed"
        assert body["details"] == {"step": "create"}
        async with get_session_maker()() as session:
            stored = await session.get(WeeklyNewsletter, newsletter_id)
            assert stored is not None
            assert stored.status == "draft"

    @pytest.mark.asyncio
    async def test_broadcast_send_failure_keeps_the_broadcast_id(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test that a failed send reports the created broadcast."""
        newsletter_id = await _create(async_http_client, auth_headers)
        await async_http_client.patch(
            f"{BASE}/{newsletter_id}", json={"audienceId": "aud_weekly"}, headers=auth_headers
        )
        provider_api.failures[("POST", "/broadcasts/broadcast_1/send")] = (500, "Upstream down")

        response = await async_http_client.post(
            f"{BASE}/{newsletter_id}/send", headers=auth_headers
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        body = response.json()
        assert body["error"] == "broadcast_failed"
        assert body["details"] == {"step": "send", "broadcastId": "broadcast_1"}
        assert "Upstream down" in body["message"]


async def _add_article(title: str, age: timedelta) -> str:
    async with get_session_maker()() as session:
        link = f"https://example.com/{title.lower().replace(' ', '-')}"
        article = Article(
            title=title,
            source_link=link,
            canonical_link=link,
            creator="The Verge",
            why_it_matters=f"Why {title} matters.",
            created_at=utcnow() - age,
        )
        session.add(article)
        await session.commit()
        return article.id


class TestFetchNews:
    """Test the model's weekly story picks."""

    @pytest.mark.asyncio
    async def test_picks_come_from_the_last_seven_days(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test the prompt contents and the normalized picks."""
        # Arrange
        chips_id = await _add_article("Chips get cheaper", timedelta(days=1))
        await _add_article("Agents ship", timedelta(days=2))
        await _add_article("Old news", timedelta(days=10))
        fake_llm.queue(
            {
                "news": [
                    {
                        "id": 1,
                        "headline": "Chips get cheaper",
                        "why_this_matters": "Inference costs fall.",
                        "source": "The Verge",
                        "link": "https://example.com/chips-get-cheaper",
                    }
                ]
            }
        )

        # Act
        response = await async_http_client.post(
            f"{BASE}/fetch-news", json={"limit": 5}, headers=auth_headers
        )

        # Assert
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "items": [
                {
                    "id": chips_id,
                    "title": "Chips get cheaper",
                    "url": "https://example.com/chips-get-cheaper",
                    "summary": "Inference costs fall.",
                    "source": "The Verge",
                }
            ]
        }
        (prompt,) = fake_llm.prompts
        assert "Chips get cheaper" in prompt
        assert "Agents ship" in prompt
        assert "Old news" not in prompt
        assert "$json.articles" not in prompt

    @pytest.mark.asyncio
    async def test_stored_prompt_is_used(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test that a saved weekly prompt replaces the default."""
        await _add_article("Agents ship", timedelta(hours=3))
        await async_http_client.post(
            "/api/prompts",
            json={
                "key": "weekly_update",
                "prompt": "Pick from {{ $json.total_articles }} articles: {{ $json.articles }}",
            },
            headers=auth_headers,
        )
        fake_llm.queue({"news": []})

        await async_http_client.post(f"{BASE}/fetch-news", headers=auth_headers)

        assert fake_llm.prompts[0].startswith("Pick from 1 articles: [")

    @pytest.mark.asyncio
    async def test_no_recent_articles_skips_the_model(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test the empty week."""
        response = await async_http_client.post(f"{BASE}/fetch-news", headers=auth_headers)

        assert response.json() == {"items": []}
        assert fake_llm.prompts == []

    @pytest.mark.asyncio
    async def test_unusable_picks_fall_back_to_newest_articles(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test that picks without a title or link are dropped."""
        await _add_article("Chips get cheaper", timedelta(days=1))
        await _add_article("Agents ship", timedelta(days=2))
        fake_llm.queue({"news": [{"id": 99, "why_this_matters": "No headline here."}]})

        response = await async_http_client.post(
            f"{BASE}/fetch-news", json={"limit": 1}, headers=auth_headers
        )

        (item,) = response.json()["items"]
        assert item["title"] == "Chips get cheaper"
        assert item["summary"] == "Why Chips get cheaper matters."

    @pytest.mark.asyncio
    async def test_limit_is_capped(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test that at most ten stories come back."""
        await _add_article("Agents ship", timedelta(days=1))
        fake_llm.queue(
            {
                "items": [
                    {"title": f"Story {i}", "url": f"https://example.com/{i}"}
                    for i in range(12)
                ]
            }
        )

        response = await async_http_client.post(
            f"{BASE}/fetch-news", json={"limit": 50}, headers=auth_headers
        )

        items = response.json()["items"]
        assert len(items) == 10
        assert items[0] == {
            "id": "",
            "title": "Story 0",
            "url": "https://example.com/0",
            "summary": "",
            "source": "example.com",
        }

    @pytest.mark.asyncio
    async def test_answer_without_news_list_is_a_502(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        fake_llm: FakeLLM,
    ) -> None:
        """Test that a malformed answer is reported, not papered over."""
        await _add_article("Agents ship", timedelta(days=1))
        fake_llm.queue({"stories": "none"})

        response = await async_http_client.post(f"{BASE}/fetch-news", headers=auth_headers)

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        body = response.json()
        assert body["error"] == "llm_parse_error"
        assert body["details"] == {"reason": "missing_fields"}
