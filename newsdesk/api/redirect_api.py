"""Outbound link redirects: the allowlisted ``/api/redirect`` and the ``/r/{code}`` short links."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from newsdesk.api.dependencies import UnitOfWork, get_uow
from newsdesk.api.openapi_responses import ErrorExample, error_responses
from newsdesk.core.errors import build_http_error
from newsdesk.core.rate_limit import REDIRECT_RATE_LIMIT, limit, rate_limit_ip_key
from newsdesk.core.tasks import spawn_detached
from newsdesk.services.short_link_service import record_click

router = APIRouter()
short_link_router = APIRouter()


@router.get(
    "/redirect",
    summary="Redirect to an allowed URL",
    description=(
        "HTTPS targets on a known host only: the static allowlist plus hosts seen in "
        "RSS sources, articles and short links."
    ),
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
    responses=error_responses(
        ErrorExample(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_redirect",
            message="Invalid redirect URL",
            description="Target not allowed",
        )
    ),
)
@limit(REDIRECT_RATE_LIMIT, key_func=rate_limit_ip_key)
async def redirect(
    request: Request,
    url: str | None = Query(default=None),
    uow: UnitOfWork = Depends(get_uow),
) -> RedirectResponse:
    if not url or not await uow.redirect_service.is_allowed(url):
        raise build_http_error(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_redirect",
            message="Invalid redirect URL",
        )
    return RedirectResponse(url.strip(), status_code=status.HTTP_302_FOUND)


@short_link_router.get(
    "/r/{code}",
    tags=["redirects"],
    summary="Follow a short link",
    description="Unknown codes redirect to the site root.",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
)
@limit(REDIRECT_RATE_LIMIT, key_func=rate_limit_ip_key)
async def follow_short_link(
    request: Request, code: str, uow: UnitOfWork = Depends(get_uow)
) -> RedirectResponse:
    link = await uow.short_link_service.find_by_code(code)
    if link is None:
        return RedirectResponse("/", status_code=status.HTTP_302_FOUND)
    spawn_detached(record_click(code), name=f"short-link-click:{code}")
    return RedirectResponse(link.target_url, status_code=status.HTTP_302_FOUND)
