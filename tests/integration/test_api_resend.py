"""Integration tests for Resend listings and ad hoc email."""

from __future__ import annotations

import pytest
from fastapi import status
from httpx import AsyncClient

from tests.conftest import FakeProviderApi

HTML = "<html><body><p>Quick note</p></body></html>"


class TestAudiences:
    """Test the audience picker."""

    @pytest.mark.asyncio
    async def test_all_contacts_first(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test that the all-contacts audience is relabelled and moved first."""
        provider_api.audiences = [
            {"id": "aud_daily", "name": "Daily"},
            {"id": "aud_all", "name": "All Contacts"},
        ]

        response = await async_http_client.get("/api/resend/audiences", headers=auth_headers)

        assert response.json() == [
            {"id": "aud_all", "name": "All Subscribers (Resend)"},
            {"id": "aud_daily", "name": "Daily"},
        ]

    @pytest.mark.asyncio
    async def test_sentinel_without_all_contacts(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test the ``resend_all`` placeholder."""
        provider_api.audiences = [{"id": "aud_daily", "name": "Daily"}]

        response = await async_http_client.get("/api/resend/audiences", headers=auth_headers)

        assert [item["id"] for item in response.json()] == ["resend_all", "aud_daily"]

    @pytest.mark.asyncio
    async def test_listing_is_cached(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test that repeated views reuse one provider call."""
        await async_http_client.get("/api/resend/audiences", headers=auth_headers)
        await async_http_client.get("/api/resend/audiences", headers=auth_headers)

        assert len(provider_api.calls("GET", "/audiences")) == 1


class TestTopics:
    """Test topic listing and creation."""

    @pytest.mark.asyncio
    async def test_create_then_list(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test that creating a topic refreshes the cached list."""
        # Act
        before = await async_http_client.get("/api/resend/topics", headers=auth_headers)
        created = await async_http_client.post(
            "/api/resend/topics", json={"name": " Launches "}, headers=auth_headers
        )
        after = await async_http_client.get("/api/resend/topics", headers=auth_headers)

        # Assert
        assert before.json() == []
        assert created.status_code == status.HTTP_201_CREATED
        assert created.json()["name"] == "Launches"
        assert [topic["name"] for topic in after.json()] == ["Launches"]

    @pytest.mark.asyncio
    async def test_provider_failure_lists_nothing(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test that an unreachable provider yields an empty list."""
        provider_api.failures[("GET", "/topics")] = (500, "boom")

        response = await async_http_client.get("/api/resend/topics", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []


class TestAdhocEmail:
    """Test ``POST /api/email/send-adhoc``."""

    @pytest.mark.asyncio
    async def test_addresses_are_batched(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test a send to explicit addresses, without a footer."""
        response = await async_http_client.post(
            "/api/email/send-adhoc",
            json={
                "subject": "Hello",
                "html": HTML,
                "emails": ["a@example.com", "B@example.com", "a@example.com"],
            },
            headers=auth_headers,
        )

        body = response.json()
        assert (body["mode"], body["sent"], body["failed"]) == ("batch", 2, 0)
        (batch,) = provider_api.sent_payloads("POST", "/emails/batch")
        assert [email["to"] for email in batch] == [["a@example.com"], ["b@example.com"]]
        assert all(email["html"] == HTML for email in batch)

    @pytest.mark.asyncio
    async def test_audience_broadcast(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test a send to an audience id."""
        response = await async_http_client.post(
            "/api/email/send-adhoc",
            json={"subject": "Hello", "html": HTML, "audienceId": "aud_daily"},
            headers=auth_headers,
        )

        assert response.json()["mode"] == "broadcast"
        (broadcast,) = provider_api.sent_payloads("POST", "/broadcasts")
        assert broadcast["audience_id"] == "aud_daily"
        assert broadcast["name"].startswith("Ad Hoc: Hello - ")
        assert broadcast["html"] == HTML

    @pytest.mark.asyncio
    async def test_missing_all_contacts_audience(
        self,
        async_http_client: AsyncClient,
        auth_headers: dict[str, str],
        provider_api: FakeProviderApi,
    ) -> None:
        """Test ``resend_all`` when no such audience exists."""
        provider_api.audiences = [{"id": "aud_daily", "name": "Daily"}]

        response = await async_http_client.post(
            "/api/email/send-adhoc",
            json={"subject": "Hello", "html": HTML, "audienceId": "resend_all"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "audience_not_found"

    @pytest.mark.asyncio
    async def test_recipients_required(
        self, async_http_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        """Test that one of the recipient fields is needed."""
        response = await async_http_client.post(
            "/api/email/send-adhoc",
            json={"subject": "Hello", "html": HTML},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "validation_error"
