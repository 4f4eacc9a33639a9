"""Distribution: compose a sequence's newsletter and hand it to Resend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence as Seq
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.errors import NewsdeskError, ProviderError
from newsdesk.db.base import utcnow
from newsdesk.db.models.newsletter import Sequence
from newsdesk.llm.schemas import NewsletterContent
from newsdesk.providers.base import Sleep
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.gateway import ProviderGateway
from newsdesk.providers.resend import BATCH_LIMIT, Contact, OutgoingEmail, ResendClient
from newsdesk.services.activity_service import ActivityLogger
from newsdesk.services.article_source import ArticleSourceResolver, NoArticlesError, SourceArticle
from newsdesk.services.composer import NewsletterComposer
from newsdesk.services.email_footer import append_email_footer
from newsdesk.services.prompt_service import PromptService
from newsdesk.services.rendering import (
    build_newsletter_context,
    generate_email_html,
    generate_plain_text,
    render_template,
)
from newsdesk.services.schedule import should_run
from newsdesk.services.short_link_service import ShortLinkService
from newsdesk.services.template_service import ResolvedTemplate, TemplateService

logger = logging.getLogger(__name__)

ALL_CONTACTS_SENTINELS: Final[frozenset[str]] = frozenset({"resend_all", "local_all"})
ALL_CONTACTS_AUDIENCE = "All Contacts"
BATCH_SPACING_SECONDS = 0.6
TEST_SUBJECT = "[TEST] AI Product Briefing - Daily Digest"

SendMode = Literal["single", "batch", "broadcast"]


class DistributionError(NewsdeskError):
    status_code = 400


class BroadcastError(NewsdeskError):
    """Creating or sending a broadcast failed; ``step`` says which call."""

    status_code = 502

    def __init__(self, step: Literal["create", "send"], message: str) -> None:
        super().__init__(
            f"Failed to {step} Resend broadcast: {message}",
            "broadcast_failed",
            details={"step": step},
        )
        self.step = step


@dataclass(frozen=True)
class Recipients:
    """Either literal addresses or a provider audience, never both."""

    emails: list[str] = field(default_factory=list)
    audience_id: str | None = None


@dataclass(frozen=True)
class DeliveryReport:
    mode: SendMode
    sent: int = 0
    failed: int = 0
    broadcast_id: str | None = None


@dataclass(frozen=True)
class RenderedNewsletter:
    content: NewsletterContent
    articles: list[SourceArticle]
    html: str
    text: str
    include_footer: bool = True


@dataclass(frozen=True)
class ScheduledResult:
    sequence_id: str
    success: bool
    error: str | None = None


def split_emails(value: str) -> list[str]:
    seen: dict[str, None] = {}
    for part in value.split(","):
        email = part.strip().lower()
        if email:
            seen.setdefault(email, None)
    return list(seen)


def _active_unique(contacts: Seq[Contact]) -> list[str]:
    """Deduplicate by address; a contact unsubscribed anywhere stays excluded."""
    by_email: dict[str, bool] = {}
    for contact in contacts:
        email = contact.email.strip().lower()
        if email:
            by_email[email] = by_email.get(email, False) or contact.unsubscribed
    return [email for email, unsubscribed in by_email.items() if not unsubscribed]


class DistributionService:
    def __init__(
        self,
        session: AsyncSession,
        providers: ProviderGateway,
        *,
        resolver: ArticleSourceResolver | None = None,
        composer: NewsletterComposer | None = None,
        short_links: ShortLinkService | None = None,
        templates: TemplateService | None = None,
        prompts: PromptService | None = None,
        activity: ActivityLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._session = session
        self._providers = providers
        self._resolver = resolver or ArticleSourceResolver(session, providers, clock)
        self._composer = composer or NewsletterComposer(session, providers, clock)
        self._short_links = short_links or ShortLinkService(session)
        self._templates = templates or TemplateService(session)
        self._activity = activity or ActivityLogger(session)
        self._prompts = prompts or PromptService(session, self._activity)
        self._clock = clock
        self._sleep = sleep

    @property
    def article_source(self) -> str | None:
        return self._resolver.source

    async def _log(
        self, event: str, message: str, status: Any, sequence: Sequence, **metadata: Any
    ) -> None:
        await self._activity.log(
            event,
            message,
            status,
            {"sequenceId": sequence.id, "sequenceName": sequence.name, **metadata},
        )

    async def active_sequences(self) -> list[Sequence]:
        result = await self._session.execute(select(Sequence).where(Sequence.status == "active"))
        return list(result.scalars().all())

    async def fetch_all_contacts(self, client: ResendClient) -> list[str]:
        """Active addresses from the contacts API, else the union of every audience."""
        try:
            contacts = await client.list_contacts()
        except ProviderError as exc:
            logger.warning("Failed to list Resend contacts: %s", exc)
            contacts = []
        if not contacts:
            try:
                audiences = await client.list_audiences()
            except ProviderError as exc:
                logger.warning("Failed to list Resend audiences: %s", exc)
                audiences = []
            for audience in audiences:
                try:
                    contacts.extend(await client.list_contacts(audience.id))
                except ProviderError as exc:
                    logger.warning("Failed to list contacts for audience %s: %s", audience.id, exc)
        return _active_unique(contacts)

    async def resolve_recipients(self, audience_id: str, client: ResendClient) -> Recipients:
        """Map a sequence's audience field onto concrete recipients.

        Comma-separated addresses are sent directly. ``resend_all`` and
        ``local_all`` mean the "All Contacts" audience, or every active
        contact when no such audience exists. Anything else is an audience id.
        """
        value = audience_id.strip()
        if value in ALL_CONTACTS_SENTINELS:
            try:
                audience = await client.find_audience_by_name(ALL_CONTACTS_AUDIENCE)
            except ProviderError as exc:
                logger.warning("Failed to look up the All Contacts audience: %s", exc)
                audience = None
            if audience is not None:
                return Recipients(audience_id=audience.id)
            return Recipients(emails=await self.fetch_all_contacts(client))
        if "@" in value:
            return Recipients(emails=split_emails(value))
        return Recipients(audience_id=value)

    def _personalize(self, html: str, email: str, include_footer: bool) -> str:
        if not include_footer:
            return html
        return append_email_footer(html, email, settings.public_base_url, now=self._clock())

    async def deliver(
        self,
        client: ResendClient,
        recipients: Recipients,
        *,
        subject: str,
        html: str,
        text: str | None,
        include_footer: bool = True,
        broadcast_name: str,
        preview_text: str | None = None,
    ) -> DeliveryReport:
        """Single send, batched sends (100 per call) or a two-step broadcast."""
        sender = str(await self._providers.sender())

        if recipients.audience_id is not None:
            broadcast_html = (
                append_email_footer(html, "", include_unsubscribe=False, now=self._clock())
                if include_footer
                else html
            )
            try:
                broadcast_id = await client.create_broadcast(
                    name=broadcast_name,
                    audience_id=recipients.audience_id,
                    sender=sender,
                    subject=subject,
                    html=broadcast_html,
                    text=text,
                    preview_text=preview_text,
                )
            except (ProviderError, ValueError) as exc:
                raise BroadcastError("create", str(exc)) from exc
            try:
                await client.send_broadcast(broadcast_id)
            except ProviderError as exc:
                error = BroadcastError("send", str(exc))
                error.details = {"step": "send", "broadcastId": broadcast_id}
                raise error from exc
            return DeliveryReport(mode="broadcast", sent=1, broadcast_id=broadcast_id)

        emails = recipients.emails
        if len(emails) == 1:
            await client.send_email(
                OutgoingEmail(
                    sender=sender,
                    to=[emails[0]],
                    subject=subject,
                    html=self._personalize(html, emails[0], include_footer),
                    text=text,
                )
            )
            return DeliveryReport(mode="single", sent=1)

        sent = failed = 0
        for start in range(0, len(emails), BATCH_LIMIT):
            chunk = emails[start : start + BATCH_LIMIT]
            batch = [
                OutgoingEmail(
                    sender=sender,
                    to=[email],
                    subject=subject,
                    html=self._personalize(html, email, include_footer),
                    text=text,
                )
                for email in chunk
            ]
            try:
                await client.send_batch(batch)
                sent += len(chunk)
            except ProviderError as exc:
                logger.error("Batch send of %d emails failed: %s", len(chunk), exc)
                failed += len(chunk)
            if start + BATCH_LIMIT < len(emails):
                await self._sleep(BATCH_SPACING_SECONDS)
        return DeliveryReport(mode="batch", sent=sent, failed=failed)

    async def render(
        self,
        articles: list[SourceArticle],
        *,
        system_prompt: str | None,
        user_prompt: str | None,
        content_sources: Seq[str] | None,
        template_id: str | None = None,
        template_html: str | None = None,
        resolved_template: ResolvedTemplate | None = None,
        sequence_id: str | None = None,
        subject: str | None = None,
        shorten_links: bool = True,
    ) -> RenderedNewsletter:
        system, user = await self._prompts.prompts_for(system_prompt, user_prompt)
        content = await self._composer.generate_newsletter_content(
            articles, system, user, content_sources=content_sources
        )
        if subject and subject.strip():
            content.subject = subject.strip()
        if shorten_links:
            content = await self._short_links.wrap_with_short_links(
                content, articles, sequence_id
            )

        include_footer = True
        if template_html is None:
            resolved = resolved_template or await self._templates.resolve_template(template_id)
            template_html = resolved.html
            include_footer = resolved.include_footer
        origin = settings.public_base_url
        html = generate_email_html(
            content, articles, origin, template=template_html, now=self._clock()
        )
        text = generate_plain_text(content, now=self._clock())
        return RenderedNewsletter(content, articles, html, text, include_footer)

    async def run_distribution(
        self, sequence_id: str, skip_article_check: bool = False
    ) -> DeliveryReport | None:
        """Compose and send one sequence. Returns ``None`` when skipped."""
        sequence = await self._session.get(Sequence, sequence_id)
        if sequence is None or sequence.status != "active":
            await self._activity.log(
                "distribution_failed",
                f"Sequence not found or not active: {sequence_id}",
                "error",
                {"sequenceId": sequence_id},
            )
            raise DistributionError("Sequence not found or not active", "sequence_not_active")

        await self._log(
            "distribution_started",
            f"Starting distribution for sequence: {sequence.name}",
            "info",
            sequence,
        )
        if not sequence.audience_id:
            await self._log(
                "distribution_failed",
                f"Sequence is missing audience ID: {sequence.name}",
                "error",
                sequence,
            )
            raise DistributionError("Sequence audience ID not configured", "audience_missing")

        try:
            articles = await self._resolver.resolve_articles(sequence.day_of_week)
        except NoArticlesError as exc:
            if not skip_article_check:
                await self._log(
                    "distribution_skipped",
                    f"No recent articles to send for sequence: {sequence.name}",
                    "warning",
                    sequence,
                    reason=exc.reason,
                )
                return None
            articles = []

        await self._log(
            "distribution_articles_fetched",
            f"Fetched {len(articles)} articles for sequence: {sequence.name}",
            "info",
            sequence,
            articleCount=len(articles),
        )

        rendered = await self.render(
            articles,
            system_prompt=sequence.system_prompt,
            user_prompt=sequence.user_prompt,
            content_sources=sequence.content_sources,
            resolved_template=await self._templates.find_template_for(sequence),
            sequence_id=sequence.id,
        )
        await self._log(
            "distribution_content_generated",
            f"Newsletter content generated for sequence: {sequence.name}",
            "success",
            sequence,
        )

        client = await self._providers.email_or_none()
        if client is None:
            await self._log(
                "distribution_failed",
                f"Resend API key not configured for sequence: {sequence.name}",
                "error",
                sequence,
            )
            client = await self._providers.email()

        await self._log(
            "distribution_sending",
            f"Sending newsletter for sequence: {sequence.name}",
            "info",
            sequence,
            audienceId=sequence.audience_id,
        )
        recipients = await self.resolve_recipients(sequence.audience_id, client)
        if recipients.audience_id is None and not recipients.emails:
            await self._log(
                "distribution_skipped",
                f"No active Resend subscribers for sequence: {sequence.name}",
                "warning",
                sequence,
            )
            return None

        subject = rendered.content.subject or sequence.subject or sequence.name
        try:
            report = await self.deliver(
                client,
                recipients,
                subject=subject,
                html=rendered.html,
                text=rendered.text,
                include_footer=rendered.include_footer,
                broadcast_name=f"{sequence.name} - {self._clock().isoformat()}",
                preview_text=rendered.content.intro,
            )
        except BroadcastError as exc:
            await self._log(
                "distribution_failed",
                f"Failed to {exc.step} broadcast for sequence: {sequence.name}",
                "error",
                sequence,
                audienceId=recipients.audience_id,
                step=exc.step,
                error=str(exc),
            )
            raise

        if report.mode == "broadcast":
            await self._log(
                "distribution_completed",
                f"Broadcast sent for sequence: {sequence.name}",
                "success",
                sequence,
                audienceId=recipients.audience_id,
                broadcastId=report.broadcast_id,
            )
        else:
            await self._log(
                "distribution_completed",
                f"Emails sent for sequence: {sequence.name} "
                f"({report.sent} sent, {report.failed} failed)",
                "success" if report.failed == 0 else "warning",
                sequence,
                totalSent=report.sent,
                totalFailed=report.failed,
                totalSubscribers=len(recipients.emails),
            )

        sequence.last_sent = self._clock()
        await self._session.flush()
        return report

    async def run_scheduled_distributions(
        self, now: datetime | None = None
    ) -> list[ScheduledResult]:
        """Run every active sequence due ``now``, one after another.

        A failing sequence is recorded in the results and the loop moves on.
        """
        current = now or self._clock()
        results: list[ScheduledResult] = []
        for sequence in await self.active_sequences():
            if not should_run(sequence, current):
                continue
            try:
                await self.run_distribution(sequence.id)
            except Exception as exc:
                logger.error("Distribution failed for sequence %s: %s", sequence.id, exc)
                results.append(ScheduledResult(sequence.id, success=False, error=str(exc)))
            else:
                results.append(ScheduledResult(sequence.id, success=True))
        return results

    async def preview(
        self,
        *,
        system_prompt: str | None = None,
        user_prompt: str | None = None,
        html_template: str | None = None,
        day_of_week: list[str] | None = None,
        content_sources: list[str] | None = None,
        subject: str | None = None,
    ) -> RenderedNewsletter:
        try:
            articles = await self._resolver.resolve_articles(day_of_week)
        except NoArticlesError as exc:
            await self._activity.log(
                "sequences.preview",
                f"Preview failed: {exc}",
                "warning",
                {"reason": exc.reason, "totalLocalArticles": exc.total_local},
            )
            raise
        rendered = await self.render(
            articles,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            content_sources=content_sources,
            template_html=html_template or None,
            subject=subject,
        )
        await self._activity.log(
            "sequences.preview",
            "Generated sequence preview.",
            "success",
            {"source": self._resolver.source, "articleCount": len(articles)},
        )
        return rendered

    async def send_test(
        self,
        test_email: str,
        *,
        system_prompt: str | None = None,
        user_prompt: str | None = None,
        custom_html: str | None = None,
        content_sources: list[str] | None = None,
    ) -> DeliveryReport:
        articles = await self._resolver.resolve_articles()
        rendered = await self.render(
            articles,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            content_sources=content_sources,
            shorten_links=False,
        )
        html = rendered.html
        if custom_html and custom_html.strip():
            context = build_newsletter_context(
                rendered.content, articles, settings.public_base_url, self._clock()
            )
            html = render_template(custom_html, context)
        client = await self._providers.email()
        return await self.deliver(
            client,
            Recipients(emails=[test_email.strip().lower()]),
            subject=TEST_SUBJECT,
            html=html,
            text=rendered.text,
            include_footer=rendered.include_footer,
            broadcast_name=TEST_SUBJECT,
        )

    async def send_adhoc(
        self,
        *,
        subject: str,
        html: str,
        emails: list[str] | None = None,
        audience_id: str | None = None,
    ) -> DeliveryReport:
        client = await self._providers.email()
        if emails:
            recipients = Recipients(emails=split_emails(",".join(emails)))
        elif audience_id:
            recipients = await self.resolve_recipients(audience_id, client)
            if recipients.audience_id is None and audience_id in ALL_CONTACTS_SENTINELS:
                raise DistributionError("Could not find the target audience", "audience_not_found")
        else:
            raise DistributionError("No recipients specified", "no_recipients")
        return await self.deliver(
            client,
            recipients,
            subject=subject,
            html=html,
            text=None,
            include_footer=False,
            broadcast_name=f"Ad Hoc: {subject} - {self._clock().isoformat()}",
        )


def distribution_service_factory_provider(
    factory: ProviderFactory,
) -> Callable[[AsyncSession], DistributionService]:
    def build(session: AsyncSession) -> DistributionService:
        return DistributionService(session, ProviderGateway(session, factory), sleep=factory.sleep)

    return build
