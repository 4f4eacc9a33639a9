from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import admin_responses
from newsdesk.api.schemas.config_request_models import PromptResetRequest, PromptUpdateRequest
from newsdesk.api.schemas.config_response_models import PromptResponse
from newsdesk.llm.prompts import PromptKey

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get(
    "",
    summary="List prompts",
    description="All prompts, or the single prompt named by ``key``.",
    response_model=list[PromptResponse] | PromptResponse,
)
async def list_prompts(
    key: PromptKey | None = Query(default=None), uow: UnitOfWork = Depends(get_uow)
) -> list[PromptResponse] | PromptResponse:
    if key is not None:
        return PromptResponse.model_validate(await uow.prompt_service.get_prompt(key))
    return [
        PromptResponse.model_validate(view) for view in await uow.prompt_service.list_prompts()
    ]


@router.post(
    "",
    summary="Save prompt",
    response_model=PromptResponse,
    responses=admin_responses(),
)
async def save_prompt(
    payload: PromptUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> PromptResponse:
    view = await uow.prompt_service.save_prompt(payload.key, payload.prompt)
    return PromptResponse.model_validate(view)


@router.post(
    "/reset",
    summary="Reset prompt to default",
    response_model=PromptResponse,
    responses=admin_responses(),
)
async def reset_prompt(
    payload: PromptResetRequest, uow: UnitOfWork = Depends(get_uow)
) -> PromptResponse:
    return PromptResponse.model_validate(await uow.prompt_service.reset_prompt(payload.key))
