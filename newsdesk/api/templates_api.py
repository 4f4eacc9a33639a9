"""Stored newsletter templates."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import (
    ErrorExample,
    admin_responses,
    error_responses,
    not_found_response,
)
from newsdesk.api.schemas.config_request_models import (
    TemplateCreateRequest,
    TemplateUpdateRequest,
)
from newsdesk.api.schemas.config_response_models import TemplateResponse
from newsdesk.db.models.newsletter import NewsletterTemplate

router = APIRouter(dependencies=[Depends(get_current_user)])


def _template_response(template: NewsletterTemplate, usage_count: int = 0) -> TemplateResponse:
    response = TemplateResponse.model_validate(template)
    return response.model_copy(update={"usage_count": usage_count})


@router.get("", summary="List templates", response_model=list[TemplateResponse])
async def list_templates(uow: UnitOfWork = Depends(get_uow)) -> list[TemplateResponse]:
    usages = await uow.template_service.list_templates()
    return [_template_response(usage.template, usage.usage_count) for usage in usages]


@router.post(
    "",
    summary="Create template",
    description="Marking a template as default clears the flag on every other template.",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(),
)
async def create_template(
    payload: TemplateCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> TemplateResponse:
    template = await uow.template_service.create_template(**payload.model_dump())
    return _template_response(template)


@router.get(
    "/{template_id}",
    summary="Get template",
    response_model=TemplateResponse,
    responses=not_found_response("Template not found"),
)
async def get_template(template_id: str, uow: UnitOfWork = Depends(get_uow)) -> TemplateResponse:
    return _template_response(await uow.template_service.get_template(template_id))


@router.patch(
    "/{template_id}",
    summary="Update template",
    response_model=TemplateResponse,
    responses={**admin_responses(), **not_found_response("Template not found")},
)
async def update_template(
    template_id: str, payload: TemplateUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> TemplateResponse:
    template = await uow.template_service.update_template(
        template_id, **payload.model_dump(exclude_unset=True)
    )
    return _template_response(template)


@router.delete(
    "/{template_id}",
    summary="Delete template",
    description="The default template and templates used by a sequence cannot be deleted.",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        **error_responses(
            ErrorExample(
                status_code=status.HTTP_400_BAD_REQUEST,
                error="template_in_use",
                message="Template in use by sequences",
                description="Template cannot be deleted",
                details={"usageCount": 2},
            )
        ),
        **not_found_response("Template not found"),
    },
)
async def delete_template(template_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.template_service.delete_template(template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
