from __future__ import annotations

from fastapi import APIRouter, Depends, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import ErrorExample, admin_responses
from newsdesk.api.schemas.config_request_models import WelcomeTemplateRequest
from newsdesk.api.schemas.config_response_models import WelcomeTemplateResponse
from newsdesk.api.schemas.sequence_request_models import AdhocEmailRequest
from newsdesk.api.schemas.sequence_response_models import DeliveryResponse
from newsdesk.api.sequences_api import delivery_response
from newsdesk.services.template_service import DEFAULT_WELCOME_SUBJECT

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post(
    "/email/send-adhoc",
    summary="Send an ad hoc email",
    description=(
        "Send raw HTML to a list of addresses or to a provider audience. "
        "No footer is appended."
    ),
    response_model=DeliveryResponse,
    responses=admin_responses(
        ErrorExample(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="audience_not_found",
            message="Could not find the target audience",
            description="Unknown audience",
        )
    ),
)
async def send_adhoc_email(
    payload: AdhocEmailRequest, uow: UnitOfWork = Depends(get_uow)
) -> DeliveryResponse:
    report = await uow.distribution_service.send_adhoc(
        subject=payload.subject,
        html=payload.html,
        emails=[str(email) for email in payload.emails] if payload.emails else None,
        audience_id=payload.audience_id,
    )
    return delivery_response(report)


@router.get(
    "/email-templates/welcome",
    summary="Welcome email template",
    description="Returns the built-in welcome email when none has been saved.",
    response_model=WelcomeTemplateResponse,
)
async def get_welcome_template(uow: UnitOfWork = Depends(get_uow)) -> WelcomeTemplateResponse:
    template = await uow.template_service.get_welcome_template()
    return WelcomeTemplateResponse.model_validate(template)


@router.put(
    "/email-templates/welcome",
    summary="Save welcome email template",
    response_model=WelcomeTemplateResponse,
    responses=admin_responses(),
)
@router.post(
    "/email-templates/welcome",
    response_model=WelcomeTemplateResponse,
    include_in_schema=False,
)
async def save_welcome_template(
    payload: WelcomeTemplateRequest, uow: UnitOfWork = Depends(get_uow)
) -> WelcomeTemplateResponse:
    service = uow.template_service
    subject = payload.subject
    if not subject or not subject.strip():
        current = await service.get_email_template()
        subject = current.subject if current else DEFAULT_WELCOME_SUBJECT
    template = await service.save_welcome_template(
        subject=subject.strip(), html=payload.html, enabled=payload.enabled
    )
    return WelcomeTemplateResponse.model_validate(template)
