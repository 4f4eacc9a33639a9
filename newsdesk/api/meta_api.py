"""Meta API endpoints (health and the activity log)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import rate_limited_response, unauthorized_response
from newsdesk.api.schemas.meta_response_models import ActivityEntryResponse, HealthResponse
from newsdesk.core.rate_limit import HEALTH_RATE_LIMIT, limit, rate_limit_ip_key

router = APIRouter()


@router.get(
    "/health",
    tags=["meta"],
    summary="Health check",
    response_model=HealthResponse,
    responses=rate_limited_response("Rate limit exceeded"),
)
@limit(HEALTH_RATE_LIMIT, key_func=rate_limit_ip_key)
def health(request: Request) -> HealthResponse:
    """Check the health of the application."""
    return HealthResponse(status="ok")


@router.get(
    "/news/logs",
    tags=["meta"],
    summary="Recent activity",
    description="Newest first. Pipeline runs, sends, previews and configuration changes.",
    response_model=list[ActivityEntryResponse],
    responses=unauthorized_response(),
    dependencies=[Depends(get_current_user)],
)
async def activity_logs(
    response: Response,
    limit_: int = Query(default=100, ge=1, le=500, alias="limit"),
    uow: UnitOfWork = Depends(get_uow),
) -> list[ActivityEntryResponse]:
    response.headers["Cache-Control"] = "no-store"
    entries = await uow.activity.recent(limit_)
    return [ActivityEntryResponse.model_validate(entry) for entry in entries]
