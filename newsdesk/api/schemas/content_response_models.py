"""Response models for feeds, articles, data sources, components and saved content."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from newsdesk.api.schemas.common import CamelResponse


class RssSourceResponse(CamelResponse):
    id: str
    name: str
    url: str
    category: str | None = None
    enabled: bool
    created_at: datetime


class ArticleResponse(CamelResponse):
    id: str
    title: str
    source_link: str
    image_link: str | None = None
    summary: str | None = None
    why_it_matters: str | None = None
    business_value: str | None = None
    category: str | None = None
    creator: str | None = None
    published_at: datetime | None = None
    created_at: datetime


class DataSourceResponse(CamelResponse):
    id: str
    name: str
    type: str
    table_id: str | None = None
    table_name: str | None = None
    view_id: str | None = None
    view_name: str | None = None
    field_mapping: dict[str, Any] | None = None
    created_at: datetime


class ComponentResponse(CamelResponse):
    id: str
    name: str
    description: str | None = None
    type: str
    data_source_id: str | None = None
    display_options: dict[str, Any] | None = None
    created_at: datetime


class SavedContentResponse(CamelResponse):
    id: str
    type: str
    title: str
    url: str | None = None
    description: str | None = None
    image_url: str | None = None
    used: bool
    used_in_id: str | None = None
    created_at: datetime
