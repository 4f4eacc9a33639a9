"""Unit tests for the provider request loop in newsdesk/providers/base.py.

These tests drive ResendClient over an httpx MockTransport with scripted
answers and record the back-off delays instead of sleeping.
"""

from __future__ import annotations

from collections import deque

import httpx
import pytest

from newsdesk.core.errors import ProviderError
from newsdesk.providers.base import RetryPolicy
from newsdesk.providers.resend import ResendClient


class ScriptedApi:
    """Answers requests from a queue of responses, repeating the last one."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = deque(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.popleft()
        return self.responses[0]


def _rate_limited(retry_after: str | None = None) -> httpx.Response:
    headers = {"Retry-After": retry_after} if retry_after is not None else {}
    return httpx.Response(429, json={"message": "Too many requests"}, headers=headers)


def _client(api: ScriptedApi, sleeps: list[float], attempts: int = 3) -> ResendClient:
    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    return ResendClient(
        "re_test",
        transport=httpx.MockTransport(api),
        retry=RetryPolicy(max_attempts=attempts, delay=0.5),
        sleep=record_sleep,
    )


class TestRetryPolicy:
    """Test the back-off delay."""

    @pytest.mark.parametrize(
        ("attempt", "retry_after", "expected"),
        [
            (1, None, 0.5),
            (3, None, 1.5),
            (1, "2", 2.0),
            (2, "0.25", 0.25),
            (2, "-4", 0.0),
            (2, "Wed, 21 Oct 2026 07:28:00 GMT", 1.0),
        ],
    )
    def test_backoff(self, attempt: int, retry_after: str | None, expected: float) -> None:
        """Test that Retry-After wins when numeric, else the delay grows per attempt."""
        policy = RetryPolicy(max_attempts=4, delay=0.5)

        assert policy.backoff(attempt, retry_after) == expected


class TestRateLimitRetry:
    """Test the bounded retry on HTTP 429."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        """Test that a 429 is retried after the advertised delay."""
        # Arrange
        api = ScriptedApi(
            _rate_limited("2"),
            _rate_limited(),
            httpx.Response(200, json={"id": "email_1"}),
        )
        sleeps: list[float] = []
        client = _client(api, sleeps)

        # Act
        result = await client._request("POST", "/emails", json={"to": ["a@example.com"]})

        # Assert
        assert result == {"id": "email_1"}
        assert len(api.requests) == 3
        assert sleeps == [2.0, 1.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        """Test that the last 429 surfaces as a provider error."""
        api = ScriptedApi(_rate_limited())
        sleeps: list[float] = []
        client = _client(api, sleeps, attempts=3)

        with pytest.raises(ProviderError) as exc_info:
            await client.test_connection()

        assert len(api.requests) == 3
        assert sleeps == [0.5, 1.0]
        assert exc_info.value.upstream_status == 429
        assert exc_info.value.details == {"provider": "resend", "status": 429}
        assert "Too many requests" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 500, 503])
    async def test_other_errors_are_not_retried(self, status_code: int) -> None:
        """Test that non-429 failures propagate on the first call."""
        api = ScriptedApi(httpx.Response(status_code, json={"error": {"message": "Nope"}}))
        sleeps: list[float] = []
        client = _client(api, sleeps)

        with pytest.raises(ProviderError) as exc_info:
            await client.send_broadcast("broadcast_1")

        assert len(api.requests) == 1
        assert sleeps == []
        assert exc_info.value.upstream_status == status_code
        assert "Nope" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_has_no_status(self) -> None:
        """Test that a transport failure becomes a provider error without a status."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = ResendClient("re_test", transport=httpx.MockTransport(refuse))

        with pytest.raises(ProviderError) as exc_info:
            await client.test_connection()

        assert exc_info.value.upstream_status is None
        assert "no response" in str(exc_info.value)


class TestResendBroadcasts:
    """Test the broadcast calls on top of the request loop."""

    @pytest.mark.asyncio
    async def test_create_broadcast_without_id_is_rejected(self) -> None:
        """Test that a 200 without an id is not treated as success."""
        api = ScriptedApi(httpx.Response(200, json={}))
        client = _client(api, [])

        with pytest.raises(ValueError):
            await client.create_broadcast(
                name="Weekly",
                audience_id="aud_1",
                sender="news@example.com",
                subject="Hi",
                html="<p>Hi</p>",
            )

    @pytest.mark.asyncio
    async def test_send_broadcast_posts_to_the_broadcast(self) -> None:
        """Test the send path and the bearer header."""
        api = ScriptedApi(httpx.Response(200, json={"id": "broadcast_1"}))
        client = _client(api, [])

        await client.send_broadcast("broadcast_1")

        (request,) = api.requests
        assert request.method == "POST"
        assert request.url.path == "/broadcasts/broadcast_1/send"
        assert request.headers["Authorization"] == "Bearer re_test"
