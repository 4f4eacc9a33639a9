"""Resend audiences, topics and the delivery webhook."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import ErrorExample, admin_responses, error_responses
from newsdesk.api.schemas.integration_request_models import TopicCreateRequest
from newsdesk.api.schemas.integration_response_models import AudienceResponse, TopicResponse
from newsdesk.api.schemas.subscriber_response_models import WebhookReceivedResponse

router = APIRouter()


@router.get(
    "/audiences",
    summary="List audiences",
    description="The all-subscribers entry comes first, labelled for the sequence picker.",
    response_model=list[AudienceResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_audiences(uow: UnitOfWork = Depends(get_uow)) -> list[AudienceResponse]:
    audiences = await uow.resend_admin_service.audience_options()
    return [AudienceResponse(id=audience.id, name=audience.name) for audience in audiences]


@router.get(
    "/topics",
    summary="List topics",
    description="Empty when Resend is not configured or unreachable.",
    response_model=list[TopicResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_topics(uow: UnitOfWork = Depends(get_uow)) -> list[TopicResponse]:
    topics = await uow.resend_admin_service.list_topics()
    return [
        TopicResponse(id=topic.get("id"), name=topic.get("name") or "") for topic in topics
    ]


@router.post(
    "/topics",
    summary="Create topic",
    response_model=TopicResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(),
    dependencies=[Depends(get_current_user)],
)
async def create_topic(
    payload: TopicCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> TopicResponse:
    topic = await uow.resend_admin_service.create_topic(payload.name, payload.description)
    return TopicResponse(id=topic.get("id"), name=topic["name"])


@router.post(
    "/webhook",
    summary="Resend webhook",
    description=(
        "Verifies the ``resend-signature`` header against ``RESEND_WEBHOOK_SECRET`` and "
        "records the event. Redelivered events update the stored row."
    ),
    response_model=WebhookReceivedResponse,
    responses=error_responses(
        ErrorExample(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="invalid_signature",
            message="Invalid signature",
            description="Signature check failed",
            details={"reason": "timestamp_out_of_range"},
        )
    ),
)
async def resend_webhook(
    request: Request, uow: UnitOfWork = Depends(get_uow)
) -> WebhookReceivedResponse:
    raw_body = (await request.body()).decode("utf-8", errors="replace")
    headers = request.headers
    signature = headers.get("resend-signature") or headers.get("x-resend-signature")
    timestamp = headers.get("resend-timestamp") or headers.get("x-resend-timestamp")
    event = await uow.webhook_service.handle(raw_body, signature, timestamp)
    return WebhookReceivedResponse(event_id=event.event_id)
