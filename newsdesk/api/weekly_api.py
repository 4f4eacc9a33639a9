"""Weekly newsletter editor: drafts, the Chef's Table intro, previews and sends."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import (
    ErrorExample,
    admin_responses,
    not_found_response,
)
from newsdesk.api.schemas.content_response_models import SavedContentResponse
from newsdesk.api.schemas.weekly_request_models import (
    ChefsTableRequest,
    FetchNewsRequest,
    WeeklyNewsletterCreateRequest,
    WeeklyNewsletterUpdateRequest,
    WeeklyPreviewRequest,
    WeeklySendRequest,
)
from newsdesk.api.schemas.weekly_response_models import (
    ChefsTable,
    ChefsTableResponse,
    FetchNewsResponse,
    WeeklyNewsItem,
    WeeklyNewsletterDetailResponse,
    WeeklyNewsletterResponse,
    WeeklyPreviewResponse,
    WeeklySendResponse,
)
from newsdesk.db.models.newsletter import WeeklyNewsletter
from newsdesk.services.weekly_newsletter_service import MAX_NEWS_ITEMS, WeeklyNewsletterService

router = APIRouter(dependencies=[Depends(get_current_user)])

_NOT_FOUND = not_found_response("Newsletter not found")


async def _detail(
    service: WeeklyNewsletterService, newsletter: WeeklyNewsletter
) -> WeeklyNewsletterDetailResponse:
    response = WeeklyNewsletterDetailResponse.model_validate(newsletter)
    recipes = await service.recipes_for(newsletter)
    return response.model_copy(
        update={"recipes": [SavedContentResponse.model_validate(recipe) for recipe in recipes]}
    )


@router.get(
    "",
    summary="List weekly newsletters",
    description="With ``current=true``, returns this week's newsletter, creating it if needed.",
    response_model=list[WeeklyNewsletterResponse] | WeeklyNewsletterDetailResponse,
)
async def list_newsletters(
    current: bool = Query(default=False),
    status_filter: str | None = Query(default=None, alias="status"),
    uow: UnitOfWork = Depends(get_uow),
) -> list[WeeklyNewsletterResponse] | WeeklyNewsletterDetailResponse:
    service = uow.weekly_newsletter_service
    if current:
        return await _detail(service, await service.get_or_create_current())
    newsletters = await service.list_newsletters(status_filter)
    return [WeeklyNewsletterResponse.model_validate(newsletter) for newsletter in newsletters]


@router.post(
    "",
    summary="Create weekly newsletter",
    description="Creates the draft for the week containing ``weekStart`` (default: this week).",
    response_model=WeeklyNewsletterResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(
        ErrorExample(
            status_code=status.HTTP_409_CONFLICT,
            error="conflict",
            message="Newsletter already exists for this week",
            description="Week already has a newsletter",
            details={"id": "b3c1e0f2"},
        )
    ),
)
async def create_newsletter(
    payload: WeeklyNewsletterCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> WeeklyNewsletterResponse:
    newsletter = await uow.weekly_newsletter_service.create(payload.week_start)
    return WeeklyNewsletterResponse.model_validate(newsletter)


@router.post(
    "/fetch-news",
    summary="Pick this week's top stories",
    description=(
        "Asks the model to choose the top stories among the last seven days of articles. "
        "``limit`` is clamped to 1-10 (default 3). Nothing is saved."
    ),
    response_model=FetchNewsResponse,
    responses=admin_responses(
        ErrorExample(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="gemini_not_configured",
            message="Gemini API key not configured.",
            description="No LLM key stored",
        ),
        ErrorExample(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error="llm_parse_error",
            message="Model response has no 'news' list",
            description="Story selection failed",
        ),
    ),
)
async def fetch_news(
    payload: FetchNewsRequest | None = None, uow: UnitOfWork = Depends(get_uow)
) -> FetchNewsResponse:
    limit = payload.limit if payload and payload.limit is not None else MAX_NEWS_ITEMS
    items = await uow.weekly_newsletter_service.fetch_news(limit)
    return FetchNewsResponse(items=[WeeklyNewsItem.model_validate(item) for item in items])


@router.get(
    "/{newsletter_id}",
    summary="Get weekly newsletter",
    response_model=WeeklyNewsletterDetailResponse,
    responses=_NOT_FOUND,
)
async def get_newsletter(
    newsletter_id: str, uow: UnitOfWork = Depends(get_uow)
) -> WeeklyNewsletterDetailResponse:
    service = uow.weekly_newsletter_service
    return await _detail(service, await service.get(newsletter_id))


@router.patch(
    "/{newsletter_id}",
    summary="Update weekly newsletter",
    description="Attaching recipes marks them used; detaching releases them.",
    response_model=WeeklyNewsletterDetailResponse,
    responses={**admin_responses(), **_NOT_FOUND},
)
async def update_newsletter(
    newsletter_id: str,
    payload: WeeklyNewsletterUpdateRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> WeeklyNewsletterDetailResponse:
    service = uow.weekly_newsletter_service
    newsletter = await service.update(newsletter_id, **payload.model_dump(exclude_unset=True))
    return await _detail(service, newsletter)


@router.delete(
    "/{newsletter_id}",
    summary="Delete weekly newsletter",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
)
async def delete_newsletter(newsletter_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.weekly_newsletter_service.delete(newsletter_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{newsletter_id}/generate",
    summary="Generate the Chef's Table intro",
    response_model=ChefsTableResponse,
    responses=_NOT_FOUND,
)
async def generate_chefs_table(
    newsletter_id: str,
    payload: ChefsTableRequest | None = None,
    uow: UnitOfWork = Depends(get_uow),
) -> ChefsTableResponse:
    newsletter = await uow.weekly_newsletter_service.generate_chefs_table(
        newsletter_id, payload.custom_prompt if payload else None
    )
    return ChefsTableResponse(
        newsletter=WeeklyNewsletterResponse.model_validate(newsletter),
        generated=ChefsTable(
            title=newsletter.chefs_table_title, body=newsletter.chefs_table_body
        ),
    )


@router.post(
    "/{newsletter_id}/preview",
    summary="Preview weekly newsletter",
    response_model=WeeklyPreviewResponse,
    responses=_NOT_FOUND,
)
async def preview_newsletter(
    newsletter_id: str,
    payload: WeeklyPreviewRequest | None = None,
    uow: UnitOfWork = Depends(get_uow),
) -> WeeklyPreviewResponse:
    service = uow.weekly_newsletter_service
    newsletter = await service.get(newsletter_id)
    origin = payload.origin if payload else None
    return WeeklyPreviewResponse(
        html=await service.render(newsletter, origin),
        context=await service.build_context(newsletter, origin),
    )


@router.post(
    "/{newsletter_id}/send",
    summary="Send weekly newsletter",
    description=(
        "With ``testEmail``, sends a ``[TEST]`` copy to that address. Otherwise broadcasts "
        "to the newsletter's audience and marks it sent."
    ),
    response_model=WeeklySendResponse,
    responses={
        **admin_responses(
            ErrorExample(
                status_code=status.HTTP_400_BAD_REQUEST,
                error="audience_missing",
                message="No audience configured for this newsletter",
                description="No audience",
            )
        ),
        **_NOT_FOUND,
    },
)
async def send_newsletter(
    newsletter_id: str,
    payload: WeeklySendRequest | None = None,
    uow: UnitOfWork = Depends(get_uow),
) -> WeeklySendResponse:
    result = await uow.weekly_newsletter_service.send(
        newsletter_id,
        test_email=str(payload.test_email) if payload and payload.test_email else None,
        origin=payload.origin if payload else None,
    )
    return WeeklySendResponse.model_validate(result)
