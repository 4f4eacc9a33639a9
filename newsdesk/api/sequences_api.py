"""Sequences: CRUD, previews, test sends, manual sends and their prompt defaults."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import (
    ErrorExample,
    admin_responses,
    error_responses,
    not_found_response,
)
from newsdesk.api.schemas.sequence_request_models import (
    SequenceCreateRequest,
    SequencePreviewRequest,
    SequencePromptsRequest,
    SequenceTestRequest,
    SequenceUpdateRequest,
)
from newsdesk.api.schemas.sequence_response_models import (
    DeliveryResponse,
    PreviewMeta,
    SequencePreviewResponse,
    SequencePromptsResponse,
    SequenceResponse,
    SequenceSendResponse,
)
from newsdesk.core.errors import NewsdeskError, domain_error_response
from newsdesk.services.distribution_service import DeliveryReport

router = APIRouter(dependencies=[Depends(get_current_user)])

_NO_ARTICLES = ErrorExample(
    status_code=status.HTTP_400_BAD_REQUEST,
    error="no_articles",
    message="No articles found in the last 24 hours.",
    description="No articles available",
    details={"reason": "source_empty", "totalLocalArticles": 0},
)
_RESEND_NOT_CONFIGURED = ErrorExample(
    status_code=status.HTTP_400_BAD_REQUEST,
    error="resend_not_configured",
    message="Resend API key not configured. Add it under Integrations or set RESEND_API_KEY.",
    description="Resend not configured",
)
_BROADCAST_FAILED = ErrorExample(
    status_code=status.HTTP_502_BAD_GATEWAY,
    error="broadcast_failed",
    message="Failed to create Resend broadcast: audience not found",
    description="Provider failure",
    details={"step": "create"},
)


def delivery_response(report: DeliveryReport) -> DeliveryResponse:
    return DeliveryResponse(
        mode=report.mode,
        sent=report.sent,
        failed=report.failed,
        broadcast_id=report.broadcast_id,
    )


@router.get("/sequences", summary="List sequences", response_model=list[SequenceResponse])
async def list_sequences(uow: UnitOfWork = Depends(get_uow)) -> list[SequenceResponse]:
    sequences = await uow.sequence_service.list_sequences()
    return [SequenceResponse.model_validate(sequence) for sequence in sequences]


@router.post(
    "/sequences",
    summary="Create sequence",
    description="The cron ``schedule`` is derived from ``dayOfWeek`` and ``time``.",
    response_model=SequenceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(),
)
async def create_sequence(
    payload: SequenceCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> SequenceResponse:
    sequence = await uow.sequence_service.create_sequence(**payload.model_dump())
    return SequenceResponse.model_validate(sequence)


@router.post(
    "/sequences/preview",
    summary="Preview a newsletter",
    description="Compose and render with the given prompts and template without sending.",
    response_model=SequencePreviewResponse,
    responses=admin_responses(_NO_ARTICLES),
)
async def preview_sequence(
    payload: SequencePreviewRequest, uow: UnitOfWork = Depends(get_uow)
) -> SequencePreviewResponse | JSONResponse:
    service = uow.distribution_service
    try:
        rendered = await service.preview(**payload.model_dump())
    except NewsdeskError as exc:
        return domain_error_response(exc)
    return SequencePreviewResponse(
        html=rendered.html,
        content=rendered.content.model_dump(by_alias=True, exclude_none=True),
        articles=[asdict(article) for article in rendered.articles],
        meta=PreviewMeta(article_count=len(rendered.articles), source=service.article_source),
    )


@router.post(
    "/sequences/test",
    summary="Send a test email",
    description="Render the newsletter and send a ``[TEST]`` copy to one address.",
    response_model=DeliveryResponse,
    responses=admin_responses(_NO_ARTICLES, _RESEND_NOT_CONFIGURED),
)
async def send_test_email(
    payload: SequenceTestRequest, uow: UnitOfWork = Depends(get_uow)
) -> DeliveryResponse | JSONResponse:
    values = payload.model_dump()
    try:
        report = await uow.distribution_service.send_test(values.pop("test_email"), **values)
    except NewsdeskError as exc:
        return domain_error_response(exc)
    return delivery_response(report)


@router.get(
    "/sequences/{sequence_id}",
    summary="Get sequence",
    response_model=SequenceResponse,
    responses=not_found_response("Sequence not found"),
)
async def get_sequence(sequence_id: str, uow: UnitOfWork = Depends(get_uow)) -> SequenceResponse:
    return SequenceResponse.model_validate(await uow.sequence_service.get_sequence(sequence_id))


@router.patch(
    "/sequences/{sequence_id}",
    summary="Update sequence",
    description="Partial update. Changing days or time regenerates ``schedule``.",
    response_model=SequenceResponse,
    responses={**admin_responses(), **not_found_response("Sequence not found")},
)
@router.put(
    "/sequences/{sequence_id}",
    summary="Update sequence",
    response_model=SequenceResponse,
    responses={**admin_responses(), **not_found_response("Sequence not found")},
    include_in_schema=False,
)
async def update_sequence(
    sequence_id: str, payload: SequenceUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> SequenceResponse:
    sequence = await uow.sequence_service.update_sequence(
        sequence_id, **payload.model_dump(exclude_unset=True)
    )
    return SequenceResponse.model_validate(sequence)


@router.delete(
    "/sequences/{sequence_id}",
    summary="Delete sequence",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=not_found_response("Sequence not found"),
)
async def delete_sequence(sequence_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.sequence_service.delete_sequence(sequence_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sequences/{sequence_id}/send",
    summary="Send a sequence now",
    description="Run distribution immediately, bypassing the schedule and the article check.",
    response_model=SequenceSendResponse,
    responses={
        **admin_responses(_RESEND_NOT_CONFIGURED),
        **error_responses(_BROADCAST_FAILED),
    },
)
async def send_sequence(
    sequence_id: str, uow: UnitOfWork = Depends(get_uow)
) -> SequenceSendResponse | JSONResponse:
    try:
        report = await uow.distribution_service.run_distribution(
            sequence_id, skip_article_check=True
        )
    except NewsdeskError as exc:
        return domain_error_response(exc)
    if report is None:
        return SequenceSendResponse(message="Nothing to send", skipped=True)
    return SequenceSendResponse(message="Newsletter sent successfully to all subscribers!")


@router.get(
    "/sequence-prompts",
    summary="Global sequence prompts",
    response_model=SequencePromptsResponse,
)
async def get_sequence_prompts(uow: UnitOfWork = Depends(get_uow)) -> SequencePromptsResponse:
    prompts = await uow.prompt_service.sequence_prompts()
    return SequencePromptsResponse.model_validate(prompts)


@router.post(
    "/sequence-prompts",
    summary="Save global sequence prompts",
    response_model=SequencePromptsResponse,
    responses=admin_responses(),
)
async def save_sequence_prompts(
    payload: SequencePromptsRequest, uow: UnitOfWork = Depends(get_uow)
) -> SequencePromptsResponse:
    await uow.prompt_service.save_sequence_prompts(payload.system_prompt, payload.user_prompt)
    prompts = await uow.prompt_service.sequence_prompts()
    return SequencePromptsResponse.model_validate(prompts)


@router.post(
    "/sequence-prompts/reset",
    summary="Reset global sequence prompts",
    response_model=SequencePromptsResponse,
)
async def reset_sequence_prompts(uow: UnitOfWork = Depends(get_uow)) -> SequencePromptsResponse:
    await uow.prompt_service.reset_sequence_prompts()
    prompts = await uow.prompt_service.sequence_prompts()
    return SequencePromptsResponse(
        system_prompt=prompts.system_prompt, user_prompt=prompts.user_prompt, is_default=True
    )
