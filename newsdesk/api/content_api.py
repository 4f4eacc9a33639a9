"""Admin CRUD for feeds, articles, data sources, components and saved content."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import (
    ErrorExample,
    admin_responses,
    not_found_response,
)
from newsdesk.api.schemas.content_request_models import (
    ComponentCreateRequest,
    ComponentUpdateRequest,
    DataSourceCreateRequest,
    DataSourceUpdateRequest,
    RssSourceCreateRequest,
    RssSourceUpdateRequest,
    SavedContentCreateRequest,
    SavedContentUpdateRequest,
    SavedContentType,
)
from newsdesk.api.schemas.content_response_models import (
    ArticleResponse,
    ComponentResponse,
    DataSourceResponse,
    RssSourceResponse,
    SavedContentResponse,
)

router = APIRouter(dependencies=[Depends(get_current_user)])

_DUPLICATE_FEED = ErrorExample(
    status_code=status.HTTP_409_CONFLICT,
    error="conflict",
    message="RSS source with this URL already exists",
    description="Duplicate feed URL",
)


# RSS sources


@router.get("/rss-sources", tags=["rss-sources"], response_model=list[RssSourceResponse])
async def list_rss_sources(uow: UnitOfWork = Depends(get_uow)) -> list[RssSourceResponse]:
    sources = await uow.content_service.list_rss_sources()
    return [RssSourceResponse.model_validate(source) for source in sources]


@router.post(
    "/rss-sources",
    tags=["rss-sources"],
    summary="Add RSS source",
    response_model=RssSourceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(_DUPLICATE_FEED),
)
async def create_rss_source(
    payload: RssSourceCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> RssSourceResponse:
    source = await uow.content_service.create_rss_source(**payload.model_dump())
    return RssSourceResponse.model_validate(source)


@router.patch(
    "/rss-sources/{source_id}",
    tags=["rss-sources"],
    summary="Update RSS source",
    description="Partial update; the admin UI toggles ``enabled`` rather than deleting.",
    response_model=RssSourceResponse,
    responses={**admin_responses(), **not_found_response("RSS source not found")},
)
async def update_rss_source(
    source_id: str, payload: RssSourceUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> RssSourceResponse:
    source = await uow.content_service.update_rss_source(
        source_id, **payload.model_dump(exclude_unset=True)
    )
    return RssSourceResponse.model_validate(source)


@router.delete(
    "/rss-sources/{source_id}",
    tags=["rss-sources"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=not_found_response("RSS source not found"),
)
async def delete_rss_source(source_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.content_service.delete_rss_source(source_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Articles


@router.get("/articles", tags=["articles"], response_model=list[ArticleResponse])
async def list_articles(
    limit: int = Query(default=100, ge=1, le=500), uow: UnitOfWork = Depends(get_uow)
) -> list[ArticleResponse]:
    articles = await uow.content_service.list_articles(limit)
    return [ArticleResponse.model_validate(article) for article in articles]


# Data sources


@router.get("/data-sources", tags=["data-sources"], response_model=list[DataSourceResponse])
async def list_data_sources(uow: UnitOfWork = Depends(get_uow)) -> list[DataSourceResponse]:
    sources = await uow.content_service.list_data_sources()
    return [DataSourceResponse.model_validate(source) for source in sources]


@router.post(
    "/data-sources",
    tags=["data-sources"],
    response_model=DataSourceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(),
)
async def create_data_source(
    payload: DataSourceCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> DataSourceResponse:
    source = await uow.content_service.create_data_source(**payload.model_dump())
    return DataSourceResponse.model_validate(source)


@router.get(
    "/data-sources/{source_id}",
    tags=["data-sources"],
    response_model=DataSourceResponse,
    responses=not_found_response("Data source not found"),
)
async def get_data_source(
    source_id: str, uow: UnitOfWork = Depends(get_uow)
) -> DataSourceResponse:
    return DataSourceResponse.model_validate(await uow.content_service.get_data_source(source_id))


@router.patch(
    "/data-sources/{source_id}",
    tags=["data-sources"],
    response_model=DataSourceResponse,
    responses={**admin_responses(), **not_found_response("Data source not found")},
)
async def update_data_source(
    source_id: str, payload: DataSourceUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> DataSourceResponse:
    source = await uow.content_service.update_data_source(
        source_id, **payload.model_dump(exclude_unset=True)
    )
    return DataSourceResponse.model_validate(source)


@router.delete(
    "/data-sources/{source_id}",
    tags=["data-sources"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=not_found_response("Data source not found"),
)
async def delete_data_source(source_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.content_service.delete_data_source(source_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Newsletter components


@router.get(
    "/newsletter-components", tags=["components"], response_model=list[ComponentResponse]
)
async def list_components(uow: UnitOfWork = Depends(get_uow)) -> list[ComponentResponse]:
    components = await uow.content_service.list_components()
    return [ComponentResponse.model_validate(component) for component in components]


@router.post(
    "/newsletter-components",
    tags=["components"],
    response_model=ComponentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**admin_responses(), **not_found_response("Data source not found")},
)
async def create_component(
    payload: ComponentCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> ComponentResponse:
    component = await uow.content_service.create_component(**payload.model_dump())
    return ComponentResponse.model_validate(component)


@router.get(
    "/newsletter-components/{component_id}",
    tags=["components"],
    response_model=ComponentResponse,
    responses=not_found_response("Component not found"),
)
async def get_component(
    component_id: str, uow: UnitOfWork = Depends(get_uow)
) -> ComponentResponse:
    return ComponentResponse.model_validate(await uow.content_service.get_component(component_id))


@router.patch(
    "/newsletter-components/{component_id}",
    tags=["components"],
    response_model=ComponentResponse,
    responses={**admin_responses(), **not_found_response("Component not found")},
)
async def update_component(
    component_id: str, payload: ComponentUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> ComponentResponse:
    component = await uow.content_service.update_component(
        component_id, **payload.model_dump(exclude_unset=True)
    )
    return ComponentResponse.model_validate(component)


@router.delete(
    "/newsletter-components/{component_id}",
    tags=["components"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=not_found_response("Component not found"),
)
async def delete_component(component_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.content_service.delete_component(component_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Saved content


@router.get("/saved-content", tags=["saved-content"], response_model=list[SavedContentResponse])
async def list_saved_content(
    type: SavedContentType | None = Query(default=None),
    used: bool | None = Query(default=None),
    uow: UnitOfWork = Depends(get_uow),
) -> list[SavedContentResponse]:
    content_type = "reading" if type == "recipe" else type
    items = await uow.content_service.list_saved_content(content_type, used)
    return [SavedContentResponse.model_validate(item) for item in items]


@router.post(
    "/saved-content",
    tags=["saved-content"],
    response_model=SavedContentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(),
)
async def create_saved_content(
    payload: SavedContentCreateRequest, uow: UnitOfWork = Depends(get_uow)
) -> SavedContentResponse:
    item = await uow.content_service.create_saved_content(**payload.model_dump())
    return SavedContentResponse.model_validate(item)


@router.patch(
    "/saved-content/{item_id}",
    tags=["saved-content"],
    response_model=SavedContentResponse,
    responses={**admin_responses(), **not_found_response("Saved content not found")},
)
async def update_saved_content(
    item_id: str, payload: SavedContentUpdateRequest, uow: UnitOfWork = Depends(get_uow)
) -> SavedContentResponse:
    item = await uow.content_service.update_saved_content(
        item_id, **payload.model_dump(exclude_unset=True)
    )
    return SavedContentResponse.model_validate(item)


@router.delete(
    "/saved-content/{item_id}",
    tags=["saved-content"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=not_found_response("Saved content not found"),
)
async def delete_saved_content(item_id: str, uow: UnitOfWork = Depends(get_uow)) -> Response:
    await uow.content_service.delete_saved_content(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
