"""Admin CRUD for feeds, data sources, components and saved content."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.errors import ConflictError, NotFoundError
from newsdesk.db.base import Base
from newsdesk.db.models.content import (
    Article,
    DataSource,
    NewsletterComponent,
    RssSource,
    SavedContent,
)

ModelT = TypeVar("ModelT", bound=Base)


class ContentService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get(self, model: type[ModelT], item_id: str, label: str) -> ModelT:
        item = await self._session.get(model, item_id)
        if item is None:
            raise NotFoundError(f"{label} not found")
        return item

    async def _apply(self, item: ModelT, changes: dict[str, Any]) -> ModelT:
        for field, value in changes.items():
            setattr(item, field, value)
        await self._session.flush()
        return item

    async def _delete(self, item: Base) -> None:
        await self._session.delete(item)
        await self._session.flush()

    # RSS sources

    async def list_rss_sources(self) -> list[RssSource]:
        result = await self._session.execute(select(RssSource).order_by(RssSource.created_at))
        return list(result.scalars().all())

    async def create_rss_source(
        self, *, name: str, url: str, category: str | None = None, enabled: bool = True
    ) -> RssSource:
        existing = await self._session.execute(select(RssSource).where(RssSource.url == url))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("RSS source with this URL already exists", details={"url": url})
        source = RssSource(name=name, url=url, category=category, enabled=enabled)
        self._session.add(source)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "RSS source with this URL already exists", details={"url": url}
            ) from exc
        return source

    async def update_rss_source(self, source_id: str, **changes: Any) -> RssSource:
        source = await self._get(RssSource, source_id, "RSS source")
        return await self._apply(source, changes)

    async def delete_rss_source(self, source_id: str) -> None:
        await self._delete(await self._get(RssSource, source_id, "RSS source"))

    # Articles

    async def list_articles(self, limit: int = 100) -> list[Article]:
        result = await self._session.execute(
            select(Article).order_by(Article.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    # Data sources

    async def list_data_sources(self) -> list[DataSource]:
        result = await self._session.execute(select(DataSource).order_by(DataSource.created_at))
        return list(result.scalars().all())

    async def get_data_source(self, source_id: str) -> DataSource:
        return await self._get(DataSource, source_id, "Data source")

    async def create_data_source(self, **values: Any) -> DataSource:
        source = DataSource(**values)
        self._session.add(source)
        await self._session.flush()
        return source

    async def update_data_source(self, source_id: str, **changes: Any) -> DataSource:
        return await self._apply(await self.get_data_source(source_id), changes)

    async def delete_data_source(self, source_id: str) -> None:
        await self._delete(await self.get_data_source(source_id))

    # Newsletter components

    async def list_components(self) -> list[NewsletterComponent]:
        result = await self._session.execute(
            select(NewsletterComponent).order_by(NewsletterComponent.created_at)
        )
        return list(result.scalars().all())

    async def get_component(self, component_id: str) -> NewsletterComponent:
        return await self._get(NewsletterComponent, component_id, "Component")

    async def create_component(self, **values: Any) -> NewsletterComponent:
        if values.get("data_source_id"):
            await self.get_data_source(values["data_source_id"])
        component = NewsletterComponent(**values)
        self._session.add(component)
        await self._session.flush()
        return component

    async def update_component(self, component_id: str, **changes: Any) -> NewsletterComponent:
        if changes.get("data_source_id"):
            await self.get_data_source(changes["data_source_id"])
        return await self._apply(await self.get_component(component_id), changes)

    async def delete_component(self, component_id: str) -> None:
        await self._delete(await self.get_component(component_id))

    # Saved content

    async def list_saved_content(
        self, content_type: str | None = None, used: bool | None = None
    ) -> list[SavedContent]:
        statement = select(SavedContent).order_by(SavedContent.created_at.desc())
        if content_type:
            statement = statement.where(SavedContent.type == content_type)
        if used is not None:
            statement = statement.where(SavedContent.used.is_(used))
        result = await self._session.execute(statement)
        return list(result.scalars().all())

    async def get_saved_content(self, item_id: str) -> SavedContent:
        return await self._get(SavedContent, item_id, "Saved content")

    async def create_saved_content(self, **values: Any) -> SavedContent:
        item = SavedContent(**values)
        self._session.add(item)
        await self._session.flush()
        return item

    async def update_saved_content(self, item_id: str, **changes: Any) -> SavedContent:
        return await self._apply(await self.get_saved_content(item_id), changes)

    async def delete_saved_content(self, item_id: str) -> None:
        await self._delete(await self.get_saved_content(item_id))


def content_service_factory_provider() -> Callable[[AsyncSession], ContentService]:
    def build(session: AsyncSession) -> ContentService:
        return ContentService(session)

    return build
