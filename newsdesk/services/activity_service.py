"""Persistent activity log for pipeline events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.db.models.delivery import NewsActivity

logger = logging.getLogger(__name__)

ActivityStatus = Literal["info", "success", "warning", "error"]


class ActivityLogger:
    """Writes ``news_activity`` rows in the caller's transaction.

    A failed write is logged and swallowed; the activity log never breaks
    the operation it describes.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def log(
        self,
        event: str,
        message: str,
        status: ActivityStatus = "info",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        entry = NewsActivity(event=event, status=status, message=message, metadata_=metadata)
        try:
            self._session.add(entry)
            await self._session.flush()
        except SQLAlchemyError as exc:
            logger.error("Failed to write news activity log (%s): %s", event, exc)

    async def recent(self, limit: int = 100) -> list[NewsActivity]:
        result = await self._session.execute(
            select(NewsActivity).order_by(NewsActivity.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())


def activity_logger_factory_provider() -> Callable[[AsyncSession], ActivityLogger]:
    def factory(session: AsyncSession) -> ActivityLogger:
        return ActivityLogger(session)

    return factory
