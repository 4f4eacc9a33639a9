"""Strict schemas for model output.

Model responses must be a bare JSON object. Anything else is reported as an
``LLMParseError`` whose ``reason`` tells "not JSON at all" apart from "JSON,
but missing the fields we need".
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from newsdesk.core.errors import NewsdeskError

ParseFailure = Literal["non_json", "missing_fields"]


class LLMParseError(NewsdeskError):
    """The model answered, but not with the structure we asked for."""

    status_code = 502

    def __init__(self, reason: ParseFailure, message: str, raw: str = "") -> None:
        super().__init__(message, "llm_parse_error", details={"reason": reason})
        self.reason = reason
        self.raw = raw


def parse_json_object(text: str) -> dict[str, Any]:
    stripped = text.strip()
    if stripped.startswith("```"):
        raise LLMParseError("non_json", "Model wrapped its JSON in a markdown fence", text)
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise LLMParseError("non_json", f"Model returned invalid JSON: {exc.msg}", text) from exc
    if not isinstance(parsed, dict):
        raise LLMParseError("missing_fields", "Model returned JSON that is not an object", text)
    return parsed


class _LenientStrings(BaseModel):
    """Blank strings from the model are treated as missing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value


class SelectedItem(_LenientStrings):
    title: str
    source_link: str
    category: str | None = None
    creator: str | None = None
    ai_generated_summary: str | None = None
    why_it_matters: str | None = None
    business_value: str | None = None
    published_date: str | None = None
    image_link: str | None = None


class IngestionSelection(BaseModel):
    subject: str | None = None
    items: list[SelectedItem]


def parse_ingestion_selection(text: str) -> IngestionSelection:
    payload = parse_json_object(text)
    try:
        return IngestionSelection.model_validate(payload)
    except ValidationError as exc:
        raise LLMParseError(
            "missing_fields",
            "Model response is missing 'items' or item 'title'/'source_link'",
            text,
        ) from exc


class StoryRef(_LenientStrings):
    id: int | str | None = None
    headline: str | None = None
    title: str | None = None
    why_this_matters: str | None = None
    why_read_it: str | None = None
    summary: str | None = None
    source: str | None = None
    category: str | None = None
    creator: str | None = None
    link: str | None = None
    source_link: str | None = None
    url: str | None = None

    @property
    def display_headline(self) -> str:
        return self.headline or self.title or ""

    @property
    def resolved_link(self) -> str:
        return self.link or self.source_link or self.url or ""


class WeeklySelection(BaseModel):
    news: list[StoryRef]


def parse_weekly_selection(text: str) -> list[StoryRef]:
    """Stories picked for the weekly update, under ``news`` or the older ``items`` key."""
    payload = parse_json_object(text)
    stories = payload["news"] if "news" in payload else payload.get("items")
    try:
        return WeeklySelection.model_validate({"news": stories}).news
    except ValidationError as exc:
        raise LLMParseError("missing_fields", "Model response has no 'news' list", text) from exc


class ChefsTable(_LenientStrings):
    title: str | None = None
    body: str | None = None


class ContentLink(_LenientStrings):
    title: str | None = None
    url: str | None = None
    link: str | None = None
    description: str | None = None
    summary: str | None = None

    @property
    def resolved_url(self) -> str:
        return self.url or self.link or ""


class NewsletterContent(BaseModel):
    """Generated newsletter body; accepts snake_case and camelCase keys."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    subject: str | None = None
    intro: str | None = None
    featured_story: StoryRef | None = None
    top_stories: list[StoryRef] = Field(default_factory=list)
    looking_ahead: str | None = None
    from_chefs_table: ChefsTable | None = None
    news: list[StoryRef] = Field(default_factory=list)
    what_were_reading: list[ContentLink] = Field(default_factory=list)
    what_were_cooking: ContentLink | None = None
    article_ids_selected: list[int | str] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_some_section(self) -> NewsletterContent:
        sections = (
            self.intro,
            self.featured_story,
            self.top_stories,
            self.news,
            self.from_chefs_table,
        )
        if not any(sections):
            raise ValueError("newsletter content has no sections")
        return self

    @property
    def is_weekly(self) -> bool:
        return bool(self.news)


def parse_newsletter_content(text: str) -> NewsletterContent:
    payload = parse_json_object(text)
    try:
        return NewsletterContent.model_validate(payload)
    except ValidationError as exc:
        raise LLMParseError(
            "missing_fields", "Model response has no newsletter sections", text
        ) from exc
