"""Fire-and-forget work that must never fail the request that started it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_detached: set[asyncio.Task[Any]] = set()


def _on_done(task: asyncio.Task[Any]) -> None:
    _detached.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Detached task %s failed: %s", task.get_name(), exc, exc_info=exc)


def spawn_detached(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
    """Schedule ``coro`` on the running loop; failures are logged, never raised."""
    task = asyncio.create_task(coro, name=name)
    _detached.add(task)
    task.add_done_callback(_on_done)
    return task


async def drain_detached_tasks() -> None:
    """Wait for outstanding detached tasks (shutdown and tests)."""
    if not _detached:
        return
    await asyncio.gather(*list(_detached), return_exceptions=True)
