"""Stored prompt overrides and their hardcoded defaults."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.db.models.config import IngestionConfig, SequencePromptConfig, WeeklyPromptConfig
from newsdesk.llm.prompts import (
    DEFAULT_SEQUENCE_SYSTEM_PROMPT,
    DEFAULT_SEQUENCE_USER_PROMPT,
    PROMPT_DEFINITIONS,
    PromptKey,
    extract_prompt_variables,
)
from newsdesk.services.activity_service import ActivityLogger

PROMPT_KEYS: tuple[PromptKey, ...] = ("ingestion", "daily_insights", "weekly_update")

DEFAULT_INGESTION_SCHEDULE = ["monday", "tuesday", "wednesday", "thursday", "friday"]


@dataclass(frozen=True)
class PromptView:
    key: str
    label: str
    description: str
    prompt: str | None
    is_default: bool
    variables: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SequencePrompts:
    system_prompt: str
    user_prompt: str
    is_default: bool


class PromptService:
    """Prompt texts for ingestion, the daily insights email and the weekly update.

    A prompt that was never customized reads as ``prompt=None`` with
    ``is_default=True``; saving the default text verbatim counts as default.
    """

    def __init__(self, session: AsyncSession, activity: ActivityLogger | None = None) -> None:
        self._session = session
        self._activity = activity or ActivityLogger(session)

    async def _ingestion_config(self) -> IngestionConfig | None:
        result = await self._session.execute(select(IngestionConfig).limit(1))
        return result.scalar_one_or_none()

    async def _sequence_config(self) -> SequencePromptConfig | None:
        result = await self._session.execute(select(SequencePromptConfig).limit(1))
        return result.scalar_one_or_none()

    async def _weekly_config(self) -> WeeklyPromptConfig | None:
        result = await self._session.execute(select(WeeklyPromptConfig).limit(1))
        return result.scalar_one_or_none()

    async def _stored_prompt(self, key: PromptKey) -> str | None:
        if key == "ingestion":
            ingestion = await self._ingestion_config()
            return (ingestion.user_prompt if ingestion else None) or None
        if key == "daily_insights":
            sequence = await self._sequence_config()
            return (sequence.user_prompt if sequence else None) or None
        weekly = await self._weekly_config()
        return (weekly.prompt_text if weekly else None) or None

    async def _store_prompt(self, key: PromptKey, prompt: str) -> None:
        if key == "ingestion":
            ingestion = await self._ingestion_config()
            if ingestion is None:
                ingestion = IngestionConfig(
                    schedule=list(DEFAULT_INGESTION_SCHEDULE),
                    time="09:00",
                    timezone="America/New_York",
                    time_frame=72,
                )
                self._session.add(ingestion)
            ingestion.system_prompt = ""
            ingestion.user_prompt = prompt
        elif key == "daily_insights":
            sequence = await self._sequence_config()
            if sequence is None:
                sequence = SequencePromptConfig()
                self._session.add(sequence)
            sequence.system_prompt = ""
            sequence.user_prompt = prompt
        else:
            weekly = await self._weekly_config()
            if weekly is None:
                weekly = WeeklyPromptConfig()
                self._session.add(weekly)
            weekly.prompt_text = prompt
        await self._session.flush()

    async def get_prompt(self, key: PromptKey) -> PromptView:
        definition = PROMPT_DEFINITIONS[key]
        prompt = await self._stored_prompt(key)
        return PromptView(
            key=key,
            label=definition.label,
            description=definition.description,
            prompt=prompt,
            is_default=prompt is None,
            variables=extract_prompt_variables(prompt) if prompt else [],
        )

    async def list_prompts(self) -> list[PromptView]:
        return [await self.get_prompt(key) for key in PROMPT_KEYS]

    async def save_prompt(self, key: PromptKey, prompt: str) -> PromptView:
        await self._store_prompt(key, prompt)
        definition = PROMPT_DEFINITIONS[key]
        await self._activity.log("prompts.saved", f"{definition.label} updated.", "success")
        return PromptView(
            key=key,
            label=definition.label,
            description=definition.description,
            prompt=prompt,
            is_default=prompt == definition.default_prompt,
            variables=extract_prompt_variables(prompt),
        )

    async def reset_prompt(self, key: PromptKey) -> PromptView:
        definition = PROMPT_DEFINITIONS[key]
        await self._store_prompt(key, definition.default_prompt)
        await self._activity.log("prompts.reset", f"{definition.label} reset to default.", "info")
        return PromptView(
            key=key,
            label=definition.label,
            description=definition.description,
            prompt=definition.default_prompt,
            is_default=True,
            variables=extract_prompt_variables(definition.default_prompt),
        )

    async def weekly_update_prompt(self) -> str:
        stored = await self._stored_prompt("weekly_update")
        return stored or PROMPT_DEFINITIONS["weekly_update"].default_prompt

    async def sequence_prompts(self) -> SequencePrompts:
        """Global sequence prompts with the hardcoded defaults filled in."""
        config = await self._sequence_config()
        return SequencePrompts(
            system_prompt=(config.system_prompt if config else None)
            or DEFAULT_SEQUENCE_SYSTEM_PROMPT,
            user_prompt=(config.user_prompt if config else None) or DEFAULT_SEQUENCE_USER_PROMPT,
            is_default=config is None,
        )

    async def save_sequence_prompts(
        self, system_prompt: str | None, user_prompt: str | None
    ) -> SequencePromptConfig:
        config = await self._sequence_config()
        if config is None:
            config = SequencePromptConfig()
            self._session.add(config)
        if system_prompt is not None:
            config.system_prompt = system_prompt
        if user_prompt is not None:
            config.user_prompt = user_prompt
        await self._session.flush()
        return config

    async def reset_sequence_prompts(self) -> SequencePromptConfig:
        return await self.save_sequence_prompts(
            DEFAULT_SEQUENCE_SYSTEM_PROMPT, DEFAULT_SEQUENCE_USER_PROMPT
        )

    async def prompts_for(
        self, system_prompt: str | None, user_prompt: str | None
    ) -> tuple[str, str]:
        """Per-sequence overrides, then the global config, then the defaults."""
        if system_prompt and user_prompt:
            return system_prompt, user_prompt
        globals_ = await self.sequence_prompts()
        return system_prompt or globals_.system_prompt, user_prompt or globals_.user_prompt


def prompt_service_factory_provider() -> Callable[[AsyncSession], PromptService]:
    def build(session: AsyncSession) -> PromptService:
        return PromptService(session)

    return build
