from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx

from newsdesk.core.config import settings
from newsdesk.llm.client import GeminiClient, LLMClient
from newsdesk.providers.airtable import AirtableClient
from newsdesk.providers.base import RetryPolicy, Sleep
from newsdesk.providers.feeds import RssFetcher
from newsdesk.providers.resend import ResendClient

LLMFactory = Callable[[str, str | None], LLMClient]


def _gemini(api_key: str, model: str | None) -> LLMClient:
    return GeminiClient(api_key=api_key, model=model, base_url=settings.gemini_base_url)


class ProviderFactory:
    """Builds provider clients from resolved credentials.

    One instance lives on the application; tests swap the transport, the
    sleep function or the LLM constructor without touching the services.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        llm_factory: LLMFactory | None = None,
        retry: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.llm_factory = llm_factory or _gemini
        self.retry = retry or RetryPolicy()
        self.sleep = sleep

    def resend(self, api_key: str) -> ResendClient:
        return ResendClient(api_key, transport=self.transport, retry=self.retry, sleep=self.sleep)

    def airtable(self, api_key: str, base_id: str, table_id: str) -> AirtableClient:
        return AirtableClient(
            api_key,
            base_id,
            table_id,
            transport=self.transport,
            retry=self.retry,
            sleep=self.sleep,
        )

    def llm(self, api_key: str, model: str | None = None) -> LLMClient:
        return self.llm_factory(api_key, model)

    def feeds(self) -> RssFetcher:
        return RssFetcher(transport=self.transport)
