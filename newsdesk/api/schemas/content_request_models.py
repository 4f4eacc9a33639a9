"""Request models for feeds, data sources, components and saved content."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator

from newsdesk.api.schemas.common import CamelModel

SavedContentType = Literal["reading", "cooking", "recipe"]


def _http_url(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not value.lower().startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return value


class RssSourceCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1, max_length=2048)
    category: str | None = Field(default=None, max_length=100)
    enabled: bool = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str | None:
        return _http_url(v)


class RssSourceUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    url: str | None = Field(default=None, max_length=2048)
    category: str | None = Field(default=None, max_length=100)
    enabled: bool | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        return _http_url(v)


class DataSourceCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: Literal["rss_airtable", "airtable"]
    table_id: str | None = None
    table_name: str | None = None
    view_id: str | None = None
    view_name: str | None = None
    field_mapping: dict[str, str] | None = None


class DataSourceUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: Literal["rss_airtable", "airtable"] | None = None
    table_id: str | None = None
    table_name: str | None = None
    view_id: str | None = None
    view_name: str | None = None
    field_mapping: dict[str, str] | None = None


class ComponentCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    type: Literal["data", "static", "system"]
    data_source_id: str | None = None
    display_options: dict[str, Any] | None = None


class ComponentUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: Literal["data", "static", "system"] | None = None
    data_source_id: str | None = None
    display_options: dict[str, Any] | None = None


class SavedContentCreateRequest(CamelModel):
    type: SavedContentType
    title: str = Field(..., min_length=1, max_length=500)
    url: str | None = Field(default=None, max_length=2048)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=2048)

    @field_validator("url", "image_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        return _http_url(v) if v else None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        # "recipe" is the old name for reading items.
        return "reading" if v == "recipe" else v


class SavedContentUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    url: str | None = Field(default=None, max_length=2048)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=2048)
    used: bool | None = None
    used_in_id: str | None = None
