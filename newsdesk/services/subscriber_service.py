"""Public subscriber flows: subscribe, preferences and unsubscribe."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.errors import (
    ConfigurationError,
    NewsdeskError,
    NotFoundError,
    ProviderError,
    TokenError,
)
from newsdesk.core.signing import normalize_email, verify_unsubscribe_token
from newsdesk.db.models.delivery import Subscriber
from newsdesk.providers.base import Sleep
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.providers.resend import OutgoingEmail, ResendClient
from newsdesk.services.email_footer import append_email_footer
from newsdesk.services.template_service import DEFAULT_WELCOME_SUBJECT, TemplateService

logger = logging.getLogger(__name__)

# The welcome email has its own retry policy, separate from provider 429 retries.
WELCOME_ATTEMPTS = 2
WELCOME_SPACING_SECONDS = 0.65
WELCOME_RETRY_DELAY_SECONDS = 1.2

_DUPLICATE_MARKERS = ("already", "exists", "duplicate")


class SubscribeError(NewsdeskError):
    status_code = 502

    def __init__(
        self, message: str = "We couldn't add you right now. Please try again in a minute."
    ) -> None:
        super().__init__(message, "resend_failed")


@dataclass(frozen=True)
class SubscribeResult:
    welcome_email_sent: bool
    welcome_email_error: str | None


@dataclass(frozen=True)
class Preferences:
    email: str
    daily_enabled: bool
    weekly_enabled: bool


def _is_duplicate(exc: ProviderError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _DUPLICATE_MARKERS)


class SubscriberService:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        templates: TemplateService | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._session = session
        self._providers = providers
        self._templates = templates or TemplateService(session)
        self._sleep = sleep

    async def get_subscriber(self, email: str) -> Subscriber | None:
        result = await self._session.execute(
            select(Subscriber).where(Subscriber.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def _upsert_subscriber(self, email: str) -> Subscriber:
        subscriber = await self.get_subscriber(email)
        if subscriber is None:
            subscriber = Subscriber(email=email, status="active")
            self._session.add(subscriber)
        else:
            subscriber.status = "active"
        await self._session.flush()
        return subscriber

    async def _send_welcome(self, client: ResendClient, email: str) -> SubscribeResult:
        template = await self._templates.get_email_template()
        if template is None or not template.enabled:
            return SubscribeResult(welcome_email_sent=False, welcome_email_error=None)
        if not template.html:
            return SubscribeResult(
                welcome_email_sent=False,
                welcome_email_error="Welcome email is enabled but the template is empty.",
            )

        sender = await self._providers.sender()
        message = OutgoingEmail(
            sender=str(sender),
            to=[email],
            subject=template.subject or DEFAULT_WELCOME_SUBJECT,
            html=append_email_footer(template.html, email, settings.public_base_url),
        )
        error: str | None = None
        for attempt in range(WELCOME_ATTEMPTS):
            await self._sleep(WELCOME_RETRY_DELAY_SECONDS if attempt else WELCOME_SPACING_SECONDS)
            try:
                await client.send_email(message)
            except ProviderError as exc:
                error = str(exc)
                continue
            return SubscribeResult(welcome_email_sent=True, welcome_email_error=None)

        logger.error("Failed to send welcome email to %s: %s", email, error)
        return SubscribeResult(welcome_email_sent=False, welcome_email_error=error)

    async def subscribe(self, email: str) -> SubscribeResult:
        """Create the Resend contact, record the subscriber and send the welcome email.

        Raises:
            ConfigurationError: Resend has no API key (``resend_not_configured``).
            SubscribeError: Resend refused the contact for any reason other
                than it already existing.
        """
        normalized = normalize_email(email)
        client = await self._providers.email_or_none()
        if client is None:
            raise ConfigurationError(
                "Email signup isn't configured yet. Please try again later.",
                "resend_not_configured",
            )

        try:
            await client.create_contact(normalized)
        except ProviderError as exc:
            if not _is_duplicate(exc):
                logger.error("Failed to add %s to Resend: %s", normalized, exc)
                raise SubscribeError() from exc
            logger.info("Contact already exists: %s", normalized)

        await self._upsert_subscriber(normalized)
        return await self._send_welcome(client, normalized)

    def _verify(self, email: str, token: str, exp: str) -> None:
        if not verify_unsubscribe_token(email, token, exp, settings.signing_secret):
            raise TokenError()

    async def get_preferences(self, email: str, token: str, exp: str) -> Preferences:
        self._verify(email, token, exp)
        subscriber = await self.get_subscriber(email)
        if subscriber is None:
            raise NotFoundError("Subscriber not found")
        return Preferences(
            email=subscriber.email,
            daily_enabled=subscriber.daily_enabled,
            weekly_enabled=subscriber.weekly_enabled,
        )

    async def update_preferences(
        self, email: str, token: str, exp: str, *, daily_enabled: bool, weekly_enabled: bool
    ) -> None:
        """Store the flags locally, then mirror them into the daily/weekly audiences."""
        self._verify(email, token, exp)
        normalized = normalize_email(email)
        await self._session.execute(
            update(Subscriber)
            .where(Subscriber.email == normalized)
            .values(daily_enabled=daily_enabled, weekly_enabled=weekly_enabled)
        )

        client = await self._providers.email_or_none()
        if client is None:
            return
        try:
            audiences = await client.list_audiences()
        except ProviderError as exc:
            logger.error("Failed to list Resend audiences for preferences: %s", exc)
            return
        for audience in audiences:
            name = audience.name.lower()
            if "daily" in name:
                subscribed = daily_enabled
            elif "weekly" in name:
                subscribed = weekly_enabled
            else:
                continue
            try:
                await client.update_contact(audience.id, normalized, unsubscribed=not subscribed)
            except ProviderError as exc:
                logger.error(
                    "Failed to update %s in audience %s: %s", normalized, audience.name, exc
                )
                continue
            logger.info(
                "Updated %s in audience %r: subscribed=%s", normalized, audience.name, subscribed
            )

    async def unsubscribe(
        self, email: str, token: str | None = None, exp: str | None = None
    ) -> bool:
        """Unsubscribe everywhere. Returns whether a Resend audience accepted it."""
        if token:
            self._verify(email, token, exp or "")
        normalized = normalize_email(email)

        unsubscribed_in_resend = False
        client = await self._providers.email_or_none()
        if client is not None:
            try:
                audiences = await client.list_audiences()
            except ProviderError as exc:
                logger.error("Failed to list Resend audiences for unsubscribe: %s", exc)
                audiences = []
            for audience in audiences:
                try:
                    await client.update_contact(audience.id, normalized, unsubscribed=True)
                except ProviderError as exc:
                    logger.info(
                        "Contact %s not updated in audience %s: %s", normalized, audience.id, exc
                    )
                    continue
                unsubscribed_in_resend = True
                break
            if not unsubscribed_in_resend:
                logger.info("Contact %s not found in any audience", normalized)

        await self._session.execute(
            update(Subscriber).where(Subscriber.email == normalized).values(status="unsubscribed")
        )
        return unsubscribed_in_resend


def subscriber_service_factory_provider(
    factory: ProviderFactory,
) -> Callable[[AsyncSession], SubscriberService]:
    def build(session: AsyncSession) -> SubscriberService:
        return SubscriberService(session, ProviderGateway(session, factory), sleep=factory.sleep)

    return build
