"""Sequence CRUD. A sequence's cron string always follows its days and time."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.errors import NotFoundError
from newsdesk.db.models.newsletter import Sequence
from newsdesk.services.schedule import generate_cron_expression

logger = logging.getLogger(__name__)


class SequenceService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_sequences(self) -> list[Sequence]:
        result = await self._session.execute(select(Sequence).order_by(Sequence.created_at.desc()))
        return list(result.scalars().all())

    async def get_sequence(self, sequence_id: str) -> Sequence:
        sequence = await self._session.get(Sequence, sequence_id)
        if sequence is None:
            raise NotFoundError("Sequence not found")
        return sequence

    async def create_sequence(self, **values: Any) -> Sequence:
        values["schedule"] = generate_cron_expression(
            values.get("day_of_week") or [], values.get("time") or "09:00"
        )
        sequence = Sequence(**values)
        self._session.add(sequence)
        await self._session.flush()
        logger.info("Created sequence %s (%s)", sequence.id, sequence.name)
        return sequence

    async def update_sequence(self, sequence_id: str, **changes: Any) -> Sequence:
        """Apply ``changes``; a caller-supplied ``schedule`` is ignored."""
        sequence = await self.get_sequence(sequence_id)
        changes.pop("schedule", None)
        for field, value in changes.items():
            setattr(sequence, field, value)
        if "day_of_week" in changes or "time" in changes:
            sequence.schedule = generate_cron_expression(sequence.day_of_week, sequence.time)
        await self._session.flush()
        return sequence

    async def delete_sequence(self, sequence_id: str) -> None:
        sequence = await self.get_sequence(sequence_id)
        await self._session.delete(sequence)
        await self._session.flush()


def sequence_service_factory_provider() -> Callable[[AsyncSession], SequenceService]:
    def build(session: AsyncSession) -> SequenceService:
        return SequenceService(session)

    return build
