"""Ingestion schedule and manual test runs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import ErrorExample, admin_responses, error_responses
from newsdesk.api.schemas.config_request_models import (
    IngestionConfigRequest,
    IngestionTestRequest,
)
from newsdesk.api.schemas.config_response_models import IngestionConfigResponse
from newsdesk.api.schemas.sequence_response_models import IngestionRunResponse
from newsdesk.core.errors import NewsdeskError, domain_error_response

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get(
    "/config",
    summary="Ingestion configuration",
    description="Returns ``null`` until a configuration has been saved.",
    response_model=IngestionConfigResponse | None,
)
async def get_config(uow: UnitOfWork = Depends(get_uow)) -> IngestionConfigResponse | None:
    config = await uow.ingestion_service.get_config()
    return IngestionConfigResponse.model_validate(config) if config else None


@router.post(
    "/config",
    summary="Save ingestion configuration",
    response_model=IngestionConfigResponse,
    responses=admin_responses(),
)
async def save_config(
    payload: IngestionConfigRequest, uow: UnitOfWork = Depends(get_uow)
) -> IngestionConfigResponse:
    config = await uow.ingestion_service.save_config(**payload.model_dump())
    return IngestionConfigResponse.model_validate(config)


@router.post(
    "/config/reset",
    summary="Reset ingestion prompts",
    description="Restores the default selection prompt, creating a configuration if needed.",
    response_model=IngestionConfigResponse,
)
async def reset_config(uow: UnitOfWork = Depends(get_uow)) -> IngestionConfigResponse:
    return IngestionConfigResponse.model_validate(await uow.ingestion_service.reset_prompts())


@router.post(
    "/test",
    summary="Run ingestion now",
    description="Run one ingestion pass over the given lookback window.",
    response_model=IngestionRunResponse,
    responses={
        **admin_responses(),
        **error_responses(
            ErrorExample(
                status_code=status.HTTP_502_BAD_GATEWAY,
                error="llm_parse_error",
                message="Model output did not contain valid JSON",
                description="Article selection failed",
            )
        ),
    },
)
async def test_ingestion(
    payload: IngestionTestRequest, uow: UnitOfWork = Depends(get_uow)
) -> IngestionRunResponse | JSONResponse:
    try:
        outcome, time_frame = await uow.ingestion_service.run_tracked(
            "test", payload.time_frame, payload.system_prompt, payload.user_prompt
        )
    except NewsdeskError as exc:
        return domain_error_response(exc)
    return IngestionRunResponse(
        processed=outcome.processed,
        selected=outcome.selected,
        stored=outcome.stored,
        time_frame=time_frame,
    )
