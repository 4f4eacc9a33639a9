"""Newsletter definitions: sequences, templates, and weekly issues."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from newsdesk.db.base import Base, new_id, utcnow


class NewsletterTemplate(Base):
    __tablename__ = "newsletter_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    html: Mapped[str] = mapped_column(Text)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    include_footer: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Sequence(Base):
    __tablename__ = "sequences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200))
    subject: Mapped[str | None] = mapped_column(String(300), default=None)
    audience_id: Mapped[str | None] = mapped_column(String(2048), default=None)
    topic_id: Mapped[str | None] = mapped_column(String(100), default=None)
    day_of_week: Mapped[list[str]] = mapped_column(JSON, default=list)
    time: Mapped[str] = mapped_column(String(5), default="09:00")
    timezone: Mapped[str] = mapped_column(String(64), default="America/New_York")
    system_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    user_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    # Either a newsletter_templates id or one of the built-in "system-*" ids.
    template_id: Mapped[str | None] = mapped_column(String(36), default=None)
    content_sources: Mapped[list[str]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(16), default="draft", index=True)
    schedule: Mapped[str | None] = mapped_column(String(100), default=None)
    last_sent: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class WeeklyNewsletter(Base):
    __tablename__ = "weekly_newsletters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    week_start: Mapped[date] = mapped_column(Date, index=True)
    week_end: Mapped[date] = mapped_column(Date)
    subject: Mapped[str | None] = mapped_column(String(300), default=None)
    chefs_table_title: Mapped[str | None] = mapped_column(String(300), default=None)
    chefs_table_body: Mapped[str | None] = mapped_column(Text, default=None)
    news_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    recipe_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    cooking_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(16), default="draft")
    audience_id: Mapped[str | None] = mapped_column(String(100), default=None)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
