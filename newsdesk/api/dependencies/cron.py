"""Dependency guarding the cron endpoints with the shared bearer secret."""

from __future__ import annotations

from fastapi import Header, status

from newsdesk.core.auth import verify_cron_secret
from newsdesk.core.errors import build_http_error


async def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    if not verify_cron_secret(authorization):
        raise build_http_error(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="unauthorized",
            message="Unauthorized",
        )
