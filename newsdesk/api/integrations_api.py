from __future__ import annotations

from fastapi import APIRouter, Depends, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import ErrorExample, admin_responses
from newsdesk.api.schemas.common import SuccessResponse
from newsdesk.api.schemas.integration_request_models import (
    IntegrationSaveRequest,
    IntegrationTestRequest,
)
from newsdesk.api.schemas.integration_response_models import (
    IntegrationStatusResponse,
    IntegrationTestResponse,
)

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get(
    "",
    summary="Integration status",
    description="Connection status and non-secret settings per provider. Keys are never returned.",
    response_model=list[IntegrationStatusResponse],
)
async def list_integrations(
    uow: UnitOfWork = Depends(get_uow),
) -> list[IntegrationStatusResponse]:
    statuses = await uow.integration_service.list_status()
    return [IntegrationStatusResponse.model_validate(item) for item in statuses]


@router.post(
    "",
    summary="Save integration",
    description="The key is encrypted at rest. Omit it to update settings only.",
    response_model=SuccessResponse,
    responses=admin_responses(
        ErrorExample(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="api_key_required",
            message="API key is required for new integrations",
            description="Missing key",
        )
    ),
)
async def save_integration(
    payload: IntegrationSaveRequest, uow: UnitOfWork = Depends(get_uow)
) -> SuccessResponse:
    values = payload.model_dump(exclude={"service", "key"})
    if values.get("resend_from_email") is not None:
        values["resend_from_email"] = str(values["resend_from_email"])
    await uow.integration_service.save(payload.service, payload.key or None, **values)
    return SuccessResponse(message=f"{payload.service} integration saved")


@router.post(
    "/test",
    summary="Test integration",
    description="Test the given key, or the stored one. A failed test still answers 200.",
    response_model=IntegrationTestResponse,
    responses=admin_responses(
        ErrorExample(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="api_key_missing",
            message="API key not configured",
            description="No key to test",
        )
    ),
)
async def test_integration(
    payload: IntegrationTestRequest, uow: UnitOfWork = Depends(get_uow)
) -> IntegrationTestResponse:
    result = await uow.integration_service.test(
        payload.service, payload.key or None, payload.gemini_model
    )
    return IntegrationTestResponse.model_validate(result)
