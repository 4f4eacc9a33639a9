"""Unit tests for LLM client implementation.

These tests mock the OpenAI SDK to avoid real API calls and costs.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    RateLimitError,
)
from openai.types.chat import ChatCompletion, ChatCompletionMessage
from openai.types.chat.chat_completion import Choice

from newsdesk.llm.client import (
    GeminiClient,
    LLMAuthenticationError,
    LLMInvalidResponseError,
    LLMUnavailableError,
    normalize_gemini_model,
)

_REQUEST = httpx.Request("POST", "https://generativelanguage.googleapis.com/v1beta/openai/")


@pytest.fixture
def mock_openai_client() -> AsyncMock:
    """Create a mock OpenAI client."""
    return AsyncMock()


@pytest.fixture
def llm_client(mock_openai_client: AsyncMock) -> GeminiClient:
    """Create LLM client with mocked OpenAI client."""
    return GeminiClient("test-key", "gemini-2.0-flash", client=mock_openai_client)


def _create_chat_completion(content: str) -> ChatCompletion:
    """Helper to create a ChatCompletion object."""
    return ChatCompletion(
        id="test-id",
        choices=[
            Choice(
                finish_reason="stop",
                index=0,
                message=ChatCompletionMessage(
                    content=content, role="assistant", function_call=None, tool_calls=None
                ),
            )
        ],
        created=1234567890,
        model="gemini-2.0-flash",
        object="chat.completion",
    )


def test_deprecated_model_is_mapped() -> None:
    """Test that retired preview models resolve to their release names."""
    assert normalize_gemini_model("gemini-2.5-flash-preview-05-20") == "gemini-2.5-flash"
    assert normalize_gemini_model("gemini-1.5-pro") == "gemini-1.5-pro"


@pytest.mark.asyncio
async def test_generate_text_json_mode(
    llm_client: GeminiClient, mock_openai_client: AsyncMock
) -> None:
    """Test that JSON mode asks for a JSON object and returns the raw text."""
    # Arrange
    content = json.dumps({"items": []})
    mock_openai_client.chat.completions.create = AsyncMock(
        return_value=_create_chat_completion(content)
    )

    # Act
    result = await llm_client.generate_text("Pick articles")

    # Assert
    assert result == content
    kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gemini-2.0-flash"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"] == [{"role": "user", "content": "Pick articles"}]


@pytest.mark.asyncio
async def test_generate_text_plain(
    llm_client: GeminiClient, mock_openai_client: AsyncMock
) -> None:
    """Test that plain mode sends no response format."""
    mock_openai_client.chat.completions.create = AsyncMock(
        return_value=_create_chat_completion("ok")
    )

    assert await llm_client.generate_text("Say ok", json_mode=False) == "ok"
    kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
    assert "response_format" not in kwargs


@pytest.mark.asyncio
async def test_generate_text_empty_response(
    llm_client: GeminiClient, mock_openai_client: AsyncMock
) -> None:
    """Test handling of empty response from Gemini."""
    mock_openai_client.chat.completions.create = AsyncMock(
        return_value=_create_chat_completion("")
    )

    with pytest.raises(LLMInvalidResponseError, match="Empty response from Gemini"):
        await llm_client.generate_text("test prompt")


@pytest.mark.asyncio
async def test_generate_text_unexpected_structure(
    llm_client: GeminiClient, mock_openai_client: AsyncMock
) -> None:
    """Test handling of unexpected response structure."""
    # Arrange - simulate missing choices[0]
    mock_response = MagicMock(spec=ChatCompletion)
    mock_response.choices = []
    mock_openai_client.chat.completions.create = AsyncMock(return_value=mock_response)

    # Act & Assert
    with pytest.raises(LLMInvalidResponseError) as exc_info:
        await llm_client.generate_text("test prompt")

    assert exc_info.value.error_code == "llm_response_invalid"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "message"),
    [
        (APIConnectionError(request=_REQUEST), "unreachable"),
        (APITimeoutError(request=_REQUEST), "timed out"),
        (
            RateLimitError(message="Rate limited", response=MagicMock(), body={}),
            "rate limit",
        ),
    ],
)
async def test_transient_errors_are_unavailable(
    llm_client: GeminiClient,
    mock_openai_client: AsyncMock,
    error: Exception,
    message: str,
) -> None:
    """Test that transient SDK failures map to a 503 error."""
    mock_openai_client.chat.completions.create = AsyncMock(side_effect=error)

    with pytest.raises(LLMUnavailableError, match=message) as exc_info:
        await llm_client.generate_text("test prompt")

    assert exc_info.value.status_code == 503
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_authentication_error(
    llm_client: GeminiClient, mock_openai_client: AsyncMock
) -> None:
    """Test handling of authentication error."""
    # Arrange - AuthenticationError requires response and body
    mock_openai_client.chat.completions.create = AsyncMock(
        side_effect=AuthenticationError(message="Auth failed", response=MagicMock(), body={})
    )

    # Act & Assert
    with pytest.raises(LLMAuthenticationError) as exc_info:
        await llm_client.generate_text("test prompt")

    assert exc_info.value.error_code == "llm_auth_failed"
