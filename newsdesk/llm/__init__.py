from newsdesk.llm.client import GeminiClient, LLMClient, LLMServiceError
from newsdesk.llm.schemas import LLMParseError, NewsletterContent

__all__ = ["GeminiClient", "LLMClient", "LLMParseError", "LLMServiceError", "NewsletterContent"]
