"""Shared plumbing for third-party HTTP providers."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from newsdesk.core.errors import ProviderError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry on HTTP 429; every other failure propagates immediately."""

    max_attempts: int = 4
    delay: float = 1.0

    def backoff(self, attempt: int, retry_after: str | None) -> float:
        if retry_after:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass
        return self.delay * attempt


class Provider(ABC):
    name: str = "provider"

    @abstractmethod
    async def test_connection(self) -> None:
        """Raise when the configured credentials cannot reach the provider."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return response.reason_phrase


class HttpProvider(Provider):
    base_url: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self._transport = transport
        self._retry = retry or RetryPolicy()
        self._sleep = sleep
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            transport=self._transport,
            timeout=self._timeout,
        ) as client:
            attempt = 0
            while True:
                attempt += 1
                try:
                    response = await client.request(method, path, json=json, params=params)
                except httpx.HTTPError as exc:
                    raise ProviderError(self.name, None, str(exc)) from exc

                if response.status_code == 429 and attempt < self._retry.max_attempts:
                    delay = self._retry.backoff(attempt, response.headers.get("Retry-After"))
                    logger.warning(
                        "%s rate limited on %s %s, retrying in %.2fs (attempt %d/%d)",
                        self.name,
                        method,
                        path,
                        delay,
                        attempt,
                        self._retry.max_attempts,
                    )
                    await self._sleep(delay)
                    continue

                if response.is_error:
                    raise ProviderError(self.name, response.status_code, _error_message(response))
                if not response.content:
                    return {}
                return response.json()
