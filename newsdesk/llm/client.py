from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    RateLimitError,
)
from openai.types.chat import ChatCompletion, ChatCompletionMessageParam

from newsdesk.core.config import settings
from newsdesk.core.errors import NewsdeskError

logger = logging.getLogger(__name__)

_DEPRECATED_MODELS = {
    "gemini-2.5-flash-preview-05-20": "gemini-2.5-flash",
}


def normalize_gemini_model(model: str | None) -> str:
    if not model:
        return settings.gemini_model
    return _DEPRECATED_MODELS.get(model, model)


class LLMServiceError(NewsdeskError):
    """Base error raised when the LLM service cannot fulfill a request."""

    status_code = 502

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message, error_code)


class LLMUnavailableError(LLMServiceError):
    """LLM is unavailable (timeout, rate limit, or upstream outage)."""

    status_code = 503

    def __init__(self, message: str) -> None:
        super().__init__(message, "llm_unavailable")


class LLMAuthenticationError(LLMServiceError):
    """LLM authentication failed (service credentials invalid)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "llm_auth_failed")


class LLMInvalidResponseError(LLMServiceError):
    """LLM returned an empty or structurally unexpected completion."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "llm_response_invalid")


class LLMClient(ABC):
    """Text-generation capability used by ingestion and the composer."""

    name = "llm"

    @abstractmethod
    async def generate_text(self, prompt: str, *, json_mode: bool = True) -> str:
        """Return the model's raw completion text for ``prompt``."""
        raise NotImplementedError

    async def test_connection(self) -> None:
        await self.generate_text("Reply with the word ok.", json_mode=False)


class GeminiClient(LLMClient):
    """Gemini through its OpenAI-compatible chat completions endpoint."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = normalize_gemini_model(model)
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url or settings.gemini_base_url
        )

    def _handle_errors(self, error: Exception) -> LLMServiceError:
        """Map SDK and response failures onto the service error family."""
        if isinstance(error, APIConnectionError) and not isinstance(error, APITimeoutError):
            logger.error("Gemini API connection failed. Error: %s", error)
            return LLMUnavailableError("LLM service unreachable. Try again shortly.")
        elif isinstance(error, APITimeoutError):
            logger.error("Gemini API request timed out. Error: %s", error)
            return LLMUnavailableError("LLM request timed out. Try again.")
        elif isinstance(error, RateLimitError):
            logger.error("Gemini API rate limit exceeded. Error: %s", error)
            return LLMUnavailableError("LLM rate limit exceeded. Try again later.")
        elif isinstance(error, AuthenticationError):
            logger.error("Gemini API authentication failed. Error: %s", error)
            return LLMAuthenticationError("LLM authentication failed.")
        elif isinstance(error, APIError):
            logger.error("Gemini API error. Error: %s", error)
            return LLMUnavailableError("LLM service error. Try again later.")
        elif isinstance(error, (IndexError, AttributeError)):
            logger.error("Unexpected response structure from Gemini. Error: %s", error)
            return LLMInvalidResponseError("LLM returned an unexpected response.")
        elif isinstance(error, ValueError):
            logger.error("Invalid value encountered. Error: %s", error)
            return LLMInvalidResponseError(str(error))
        else:
            logger.error("Unexpected error calling Gemini. Error: %s", error)
            return LLMServiceError("LLM request failed. Try again later.", "llm_error")

    async def generate_text(self, prompt: str, *, json_mode: bool = True) -> str:
        messages: list[ChatCompletionMessageParam] = [{"role": "user", "content": prompt}]
        try:
            if json_mode:
                response: ChatCompletion = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=0.4,
                )
            else:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                )
            content = response.choices[0].message.content
            if not content:
                raise ValueError("Empty response from Gemini")
            return content
        except Exception as e:
            raise self._handle_errors(e) from e
