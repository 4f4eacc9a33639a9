"""Unit of Work: one transaction per request, session-scoped services from registry."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any, cast

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.db.session import get_session_maker
from newsdesk.services.activity_service import ActivityLogger
from newsdesk.services.content_service import ContentService
from newsdesk.services.distribution_service import DistributionService
from newsdesk.services.ingestion_service import IngestionService
from newsdesk.services.integration_service import IntegrationService
from newsdesk.services.prompt_service import PromptService
from newsdesk.services.redirect_service import RedirectService
from newsdesk.services.resend_admin_service import ResendAdminService
from newsdesk.services.sequence_service import SequenceService
from newsdesk.services.short_link_service import ShortLinkService
from newsdesk.services.subscriber_service import SubscriberService
from newsdesk.services.template_service import TemplateService
from newsdesk.services.webhook_service import WebhookService
from newsdesk.services.weekly_newsletter_service import WeeklyNewsletterService


class UnitOfWork:
    """Holds the request's session and exposes session-scoped services from the registry."""

    def __init__(self, session: AsyncSession, services: Mapping[str, Any]) -> None:
        self._session = session
        self._services = services
        self._resolved: dict[str, Any] = {}

    def _resolve(self, key: str) -> Any:
        if key not in self._resolved:
            service = self._services[key]
            self._resolved[key] = service(self._session) if callable(service) else service
        return self._resolved[key]

    @property
    def session(self) -> AsyncSession:
        """The request's session, for the module-level auth functions."""
        return self._session

    @property
    def activity(self) -> ActivityLogger:
        return cast(ActivityLogger, self._resolve("activity_logger"))

    @property
    def content_service(self) -> ContentService:
        return cast(ContentService, self._resolve("content_service"))

    @property
    def distribution_service(self) -> DistributionService:
        """Session-scoped distribution service."""
        return cast(DistributionService, self._resolve("distribution_service"))

    @property
    def ingestion_service(self) -> IngestionService:
        """Session-scoped ingestion service."""
        return cast(IngestionService, self._resolve("ingestion_service"))

    @property
    def integration_service(self) -> IntegrationService:
        return cast(IntegrationService, self._resolve("integration_service"))

    @property
    def prompt_service(self) -> PromptService:
        return cast(PromptService, self._resolve("prompt_service"))

    @property
    def redirect_service(self) -> RedirectService:
        return cast(RedirectService, self._resolve("redirect_service"))

    @property
    def resend_admin_service(self) -> ResendAdminService:
        return cast(ResendAdminService, self._resolve("resend_admin_service"))

    @property
    def sequence_service(self) -> SequenceService:
        return cast(SequenceService, self._resolve("sequence_service"))

    @property
    def short_link_service(self) -> ShortLinkService:
        return cast(ShortLinkService, self._resolve("short_link_service"))

    @property
    def subscriber_service(self) -> SubscriberService:
        """Session-scoped subscriber service."""
        return cast(SubscriberService, self._resolve("subscriber_service"))

    @property
    def template_service(self) -> TemplateService:
        return cast(TemplateService, self._resolve("template_service"))

    @property
    def webhook_service(self) -> WebhookService:
        return cast(WebhookService, self._resolve("webhook_service"))

    @property
    def weekly_newsletter_service(self) -> WeeklyNewsletterService:
        return cast(WeeklyNewsletterService, self._resolve("weekly_newsletter_service"))


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    """Per-request dependency: one session, commit on success, rollback on exception."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield UnitOfWork(session, request.app.state.services)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
