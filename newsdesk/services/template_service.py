"""Newsletter templates and the welcome email template."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.errors import NewsdeskError, NotFoundError
from newsdesk.db.models.delivery import EmailTemplate
from newsdesk.db.models.newsletter import NewsletterTemplate, Sequence
from newsdesk.services.rendering import (
    BUILTIN_TEMPLATE_FILES,
    SYSTEM_WELCOME_TEMPLATE_ID,
    builtin_template_source,
)

logger = logging.getLogger(__name__)

WELCOME_TYPE = "welcome"
DEFAULT_WELCOME_SUBJECT = "Welcome to cucina labs!"


class TemplateDeleteError(NewsdeskError):
    status_code = 400


@dataclass(frozen=True)
class ResolvedTemplate:
    """The template a send will use. ``html`` is ``None`` for the built-in layout."""

    template_id: str | None
    html: str | None
    include_footer: bool


@dataclass(frozen=True)
class TemplateUsage:
    template: NewsletterTemplate
    usage_count: int


class TemplateService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_templates(self) -> list[TemplateUsage]:
        result = await self._session.execute(
            select(NewsletterTemplate).order_by(NewsletterTemplate.created_at.desc())
        )
        counts_result = await self._session.execute(
            select(Sequence.template_id, func.count(Sequence.id))
            .where(Sequence.template_id.is_not(None))
            .group_by(Sequence.template_id)
        )
        counts = {template_id: count for template_id, count in counts_result.all()}
        return [
            TemplateUsage(template=template, usage_count=counts.get(template.id, 0))
            for template in result.scalars().all()
        ]

    async def get_template(self, template_id: str) -> NewsletterTemplate:
        template = await self._session.get(NewsletterTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        return template

    async def get_default_template(self) -> NewsletterTemplate | None:
        result = await self._session.execute(
            select(NewsletterTemplate)
            .where(NewsletterTemplate.is_default.is_(True))
            .order_by(NewsletterTemplate.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _clear_defaults(self, keep_id: str | None = None) -> None:
        # Two separate writes: unset-all, then set-one. Concurrent requests can
        # briefly leave zero or two defaults.
        statement = update(NewsletterTemplate).where(NewsletterTemplate.is_default.is_(True))
        if keep_id is not None:
            statement = statement.where(NewsletterTemplate.id != keep_id)
        await self._session.execute(statement.values(is_default=False))

    async def create_template(
        self,
        *,
        name: str,
        html: str,
        description: str | None = None,
        is_default: bool = False,
        include_footer: bool = True,
    ) -> NewsletterTemplate:
        if is_default:
            await self._clear_defaults()
        template = NewsletterTemplate(
            name=name,
            html=html,
            description=(description or "").strip() or None,
            is_default=is_default,
            include_footer=include_footer,
        )
        self._session.add(template)
        await self._session.flush()
        logger.info("Created newsletter template %s (%s)", template.id, template.name)
        return template

    async def update_template(self, template_id: str, **changes: Any) -> NewsletterTemplate:
        template = await self.get_template(template_id)
        if changes.get("is_default") is True:
            await self._clear_defaults(keep_id=template_id)
        if "description" in changes:
            changes["description"] = (changes["description"] or "").strip() or None
        for field, value in changes.items():
            if value is not None or field == "description":
                setattr(template, field, value)
        await self._session.flush()
        return template

    async def delete_template(self, template_id: str) -> None:
        template = await self.get_template(template_id)
        if template.is_default:
            raise TemplateDeleteError(
                "Cannot delete the default template", "template_is_default"
            )
        usage = await self._session.scalar(
            select(func.count(Sequence.id)).where(Sequence.template_id == template_id)
        )
        if usage:
            raise TemplateDeleteError(
                "Template in use by sequences",
                "template_in_use",
                details={"usageCount": usage},
            )
        await self._session.delete(template)
        await self._session.flush()

    async def find_template_for(self, sequence: Sequence) -> ResolvedTemplate:
        return await self.resolve_template(sequence.template_id)

    async def resolve_template(self, template_id: str | None) -> ResolvedTemplate:
        """Given template, else the default template, else the built-in layout."""
        if template_id:
            if template_id in BUILTIN_TEMPLATE_FILES:
                return ResolvedTemplate(
                    template_id, builtin_template_source(template_id), include_footer=True
                )
            template = await self._session.get(NewsletterTemplate, template_id)
            if template is not None:
                return ResolvedTemplate(template.id, template.html, template.include_footer)
            logger.warning("Template %s not found, using the built-in template", template_id)
            return ResolvedTemplate(None, None, include_footer=True)

        default = await self.get_default_template()
        if default is not None:
            return ResolvedTemplate(default.id, default.html, default.include_footer)
        return ResolvedTemplate(None, None, include_footer=True)

    async def get_email_template(self, template_type: str = WELCOME_TYPE) -> EmailTemplate | None:
        result = await self._session.execute(
            select(EmailTemplate).where(EmailTemplate.type == template_type)
        )
        return result.scalar_one_or_none()

    async def get_welcome_template(self) -> EmailTemplate:
        """Stored welcome template, or an unsaved one holding the built-in copy."""
        template = await self.get_email_template(WELCOME_TYPE)
        if template is not None:
            return template
        return EmailTemplate(
            type=WELCOME_TYPE,
            subject=DEFAULT_WELCOME_SUBJECT,
            html=builtin_template_source(SYSTEM_WELCOME_TEMPLATE_ID) or "",
            enabled=True,
        )

    async def save_welcome_template(
        self, *, subject: str, html: str, enabled: bool
    ) -> EmailTemplate:
        template = await self.get_email_template(WELCOME_TYPE)
        if template is None:
            template = EmailTemplate(type=WELCOME_TYPE, subject=subject, html=html, enabled=enabled)
            self._session.add(template)
        else:
            template.subject = subject
            template.html = html
            template.enabled = enabled
        await self._session.flush()
        return template


def template_service_factory_provider() -> Callable[[AsyncSession], TemplateService]:
    def build(session: AsyncSession) -> TemplateService:
        return TemplateService(session)

    return build
