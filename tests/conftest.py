"""Pytest configuration and shared fixtures.

Settings are validated when ``newsdesk.core.config`` is imported, so the test
environment is written to ``os.environ`` before any ``newsdesk`` import.
Provider traffic (Resend and RSS feeds) is served by an in-process
``httpx.MockTransport``; the LLM is a queue of canned completions.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections import deque
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import unquote

_SQLITE_PATH = os.path.join(tempfile.gettempdir(), f"newsdesk-test-{os.getpid()}.db")

os.environ["DATABASE_URL"] = os.getenv(
    "TEST_DATABASE_URL", f"sqlite+aiosqlite:///{_SQLITE_PATH}"
)
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_STORAGE_URL"] = "memory://"
os.environ.setdefault("JWT_SECRET_KEY", "Test-Secret-Key-For-JWT-Signing-123!")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-0123456789abcdef")
os.environ.setdefault("UNSUBSCRIBE_SECRET", "test-unsubscribe-secret")
os.environ.setdefault("PUBLIC_BASE_URL", "https://news.example.com")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession  # noqa: E402

import newsdesk.db.models  # noqa: E402,F401
from newsdesk.core.auth import create_access_token  # noqa: E402
from newsdesk.core.rate_limit import limiter  # noqa: E402
from newsdesk.core.tasks import drain_detached_tasks  # noqa: E402
from newsdesk.db.base import Base  # noqa: E402
from newsdesk.db.models.user import User  # noqa: E402
from newsdesk.db.session import get_engine, get_session_maker  # noqa: E402
from newsdesk.llm.client import LLMClient  # noqa: E402
from newsdesk.main import create_app  # noqa: E402
from newsdesk.providers.base import RetryPolicy  # noqa: E402
from newsdesk.providers.factory import ProviderFactory  # noqa: E402
from newsdesk.services.auth_service import create_user  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Sup3r-Secret-Password!"
CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


async def no_sleep(_: float) -> None:
    return None


class FakeProviderApi:
    """Stands in for api.resend.com and any RSS host.

    Every request is recorded. ``failures`` maps ``(method, path)`` to a status
    code and message returned instead of the normal answer.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.audiences: list[dict[str, Any]] = []
        self.contacts: list[dict[str, Any]] = []
        self.audience_contacts: dict[str, list[dict[str, Any]]] = {}
        self.topics: list[dict[str, Any]] = []
        self.feeds: dict[str, str] = {}
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self._ids = 0

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}_{self._ids}"

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    def sent_payloads(self, method: str, path: str) -> list[Any]:
        return [json.loads(request.content or b"null") for request in self.calls(method, path)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host != "api.resend.com":
            body = self.feeds.get(str(request.url))
            if body is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, text=body, headers={"Content-Type": "application/rss+xml"})

        method, path = request.method, request.url.path
        failure = self.failures.get((method, path))
        if failure is not None:
            status, message = failure
            return httpx.Response(status, json={"message": message})
        return self._resend(method, path, request)

    def _resend(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        parts = [unquote(part) for part in path.strip("/").split("/")]
        if method == "POST" and parts == ["emails"]:
            return httpx.Response(200, json={"id": self._next_id("email")})
        if method == "POST" and parts == ["emails", "batch"]:
            count = len(json.loads(request.content))
            return httpx.Response(
                200, json={"data": [{"id": self._next_id("email")} for _ in range(count)]}
            )
        if method == "GET" and parts == ["audiences"]:
            return httpx.Response(200, json={"data": self.audiences})
        if method == "GET" and parts == ["contacts"]:
            return httpx.Response(200, json={"data": self.contacts})
        if method == "POST" and parts[-1] == "contacts":
            return httpx.Response(200, json={"id": self._next_id("contact")})
        if parts[:1] == ["audiences"] and len(parts) >= 3 and parts[2] == "contacts":
            if method == "GET":
                return httpx.Response(200, json={"data": self.audience_contacts.get(parts[1], [])})
            if method == "PATCH" and len(parts) == 4:
                known = {item["email"] for item in self.audience_contacts.get(parts[1], [])}
                if parts[3] not in known:
                    return httpx.Response(404, json={"message": "Contact not found"})
                return httpx.Response(200, json={"id": parts[3]})
        if method == "POST" and parts == ["broadcasts"]:
            return httpx.Response(200, json={"id": self._next_id("broadcast")})
        if method == "POST" and parts[:1] == ["broadcasts"] and parts[-1] == "send":
            return httpx.Response(200, json={"id": parts[1]})
        if parts == ["topics"]:
            if method == "GET":
                return httpx.Response(200, json={"data": self.topics})
            topic = {"id": self._next_id("topic"), **json.loads(request.content)}
            self.topics.append(topic)
            return httpx.Response(201, json=topic)
        return httpx.Response(404, json={"message": f"Unhandled {method} {path}"})


class FakeLLM(LLMClient):
    """Returns queued completions in order, then ``default``."""

    name = "fake"

    def __init__(self) -> None:
        self.responses: deque[str] = deque()
        self.default: str | None = None
        self.prompts: list[str] = []

    def queue(self, *responses: str | dict[str, Any]) -> None:
        for response in responses:
            self.responses.append(
                response if isinstance(response, str) else json.dumps(response)
            )

    async def generate_text(self, prompt: str, *, json_mode: bool = True) -> str:
        self.prompts.append(prompt)
        if self.responses:
            return self.responses.popleft()
        if self.default is None:
            raise AssertionError("FakeLLM has no queued response")
        return self.default


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """In-memory limits would otherwise carry over between tests."""
    limiter.reset()


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncIterator[AsyncEngine]:
    """Fresh schema per test; the pool is disposed so connections never cross loops."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await drain_detached_tasks()
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Creates a database session for a test (function-scoped)."""
    async with get_session_maker()() as session:
        yield session


@pytest.fixture
def provider_api() -> FakeProviderApi:
    return FakeProviderApi()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def provider_factory(provider_api: FakeProviderApi, fake_llm: FakeLLM) -> ProviderFactory:
    return ProviderFactory(
        transport=httpx.MockTransport(provider_api),
        llm_factory=lambda api_key, model: fake_llm,
        retry=RetryPolicy(max_attempts=2, delay=0),
        sleep=no_sleep,
    )


@pytest_asyncio.fixture(scope="function")
async def async_app(db_engine: AsyncEngine, provider_factory: ProviderFactory) -> FastAPI:
    """Creates the FastAPI app wired to the fake providers."""
    return create_app(provider_factory)


@pytest_asyncio.fixture(scope="function")
async def async_http_client(async_app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Creates an async http client."""
    transport = ASGITransport(app=async_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def admin_user(db_session: AsyncSession) -> User:
    user = await create_user(ADMIN_EMAIL, ADMIN_PASSWORD, db_session, name="Admin")
    await db_session.commit()
    return user


@pytest.fixture
def auth_headers(admin_user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(admin_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return dict(CRON_HEADERS)
