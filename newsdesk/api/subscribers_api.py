"""Public signup, preference and unsubscribe endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import EmailStr, TypeAdapter, ValidationError

from newsdesk.api.dependencies import UnitOfWork, get_uow
from newsdesk.api.openapi_responses import (
    ErrorExample,
    error_responses,
    rate_limited_response,
    validation_error_response,
)
from newsdesk.api.schemas.subscriber_request_models import (
    PreferencesUpdateRequest,
    SubscribeRequest,
    UnsubscribeRequest,
)
from newsdesk.api.schemas.subscriber_response_models import (
    PreferencesResponse,
    SubscribeResponse,
    UnsubscribeResponse,
)
from newsdesk.core.errors import ConfigurationError, build_http_error
from newsdesk.core.rate_limit import (
    PREFERENCES_RATE_LIMIT,
    SUBSCRIBE_RATE_LIMIT,
    limit,
    rate_limit_ip_key,
)
from newsdesk.services.subscriber_service import SubscribeError

router = APIRouter()

_email_adapter = TypeAdapter(EmailStr)

_INVALID_TOKEN = ErrorExample(
    status_code=status.HTTP_403_FORBIDDEN,
    error="invalid_token",
    message="Invalid or expired link",
    description="Signed link rejected",
)


@router.post(
    "/subscribe",
    summary="Subscribe",
    description=(
        "Add the address as a Resend contact and send the welcome email when enabled. "
        "Subscribing an existing contact succeeds."
    ),
    response_model=SubscribeResponse,
    responses={
        **error_responses(
            ErrorExample(
                status_code=status.HTTP_400_BAD_REQUEST,
                error="invalid_email",
                message="Please enter a valid email address.",
                description="Invalid email",
            ),
            ErrorExample(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                error="resend_not_configured",
                message="Email signup isn't configured yet. Please try again later.",
                description="Signup unavailable",
            ),
        ),
        **rate_limited_response(),
    },
)
@limit(SUBSCRIBE_RATE_LIMIT, key_func=rate_limit_ip_key)
async def subscribe(
    request: Request,
    payload: SubscribeRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> SubscribeResponse:
    try:
        email = _email_adapter.validate_python(payload.email.strip())
    except ValidationError as e:
        raise build_http_error(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_email",
            message="Please enter a valid email address.",
            code="invalid_email",
        ) from e
    try:
        result = await uow.subscriber_service.subscribe(str(email))
    except ConfigurationError as e:
        raise build_http_error(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error=e.error_code,
            message=str(e),
            code=e.error_code,
        ) from e
    except SubscribeError as e:
        raise build_http_error(
            status_code=e.status_code,
            error=e.error_code,
            message=str(e),
            code=e.error_code,
        ) from e
    return SubscribeResponse(
        welcome_email_sent=result.welcome_email_sent,
        welcome_email_error=result.welcome_email_error,
    )


@router.get(
    "/preferences",
    summary="Read email preferences",
    description="``token`` and ``exp`` come from the signed link in the email footer.",
    response_model=PreferencesResponse,
    responses={**error_responses(_INVALID_TOKEN), **rate_limited_response()},
)
@limit(PREFERENCES_RATE_LIMIT, key_func=rate_limit_ip_key)
async def get_preferences(
    request: Request,
    email: EmailStr = Query(...),
    token: str = Query(..., min_length=1),
    exp: str = Query(..., min_length=1),
    uow: UnitOfWork = Depends(get_uow),
) -> PreferencesResponse:
    preferences = await uow.subscriber_service.get_preferences(str(email), token, exp)
    return PreferencesResponse.model_validate(preferences)


@router.post(
    "/preferences",
    summary="Update email preferences",
    description="Stores the flags and mirrors them into the daily and weekly audiences.",
    response_model=PreferencesResponse,
    responses={
        **error_responses(_INVALID_TOKEN),
        **validation_error_response(),
        **rate_limited_response(),
    },
)
@limit(PREFERENCES_RATE_LIMIT, key_func=rate_limit_ip_key)
async def update_preferences(
    request: Request,
    payload: PreferencesUpdateRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> PreferencesResponse:
    email = str(payload.email).strip().lower()
    await uow.subscriber_service.update_preferences(
        email,
        payload.token,
        payload.exp,
        daily_enabled=payload.daily_enabled,
        weekly_enabled=payload.weekly_enabled,
    )
    return PreferencesResponse(
        email=email,
        daily_enabled=payload.daily_enabled,
        weekly_enabled=payload.weekly_enabled,
    )


@router.post(
    "/unsubscribe",
    summary="Unsubscribe",
    description="Unsubscribe from every audience. A signed token is checked when given.",
    response_model=UnsubscribeResponse,
    responses={
        **error_responses(_INVALID_TOKEN),
        **validation_error_response(),
        **rate_limited_response(),
    },
)
@limit(PREFERENCES_RATE_LIMIT, key_func=rate_limit_ip_key)
async def unsubscribe(
    request: Request,
    payload: UnsubscribeRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> UnsubscribeResponse:
    everywhere = await uow.subscriber_service.unsubscribe(
        str(payload.email), payload.token, payload.exp
    )
    message = (
        "Successfully unsubscribed from all cucina labs emails"
        if everywhere
        else "Successfully unsubscribed"
    )
    return UnsubscribeResponse(message=message)
