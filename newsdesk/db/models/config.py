"""Singleton configuration rows and encrypted provider credentials."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from newsdesk.db.base import Base, new_id, utcnow


class IngestionConfig(Base):
    __tablename__ = "ingestion_config"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    schedule: Mapped[list[str]] = mapped_column(JSON, default=list)
    time: Mapped[str] = mapped_column(String(5), default="09:00")
    timezone: Mapped[str] = mapped_column(String(64), default="America/New_York")
    time_frame: Mapped[int] = mapped_column(Integer, default=72)
    system_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    user_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class SequencePromptConfig(Base):
    __tablename__ = "sequence_prompt_config"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    system_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    user_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class WeeklyPromptConfig(Base):
    __tablename__ = "weekly_prompt_config"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    prompt_text: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ApiKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    service: Mapped[str] = mapped_column(String(32), unique=True)
    key: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), default="disconnected")
    gemini_model: Mapped[str | None] = mapped_column(String(100), default=None)
    airtable_base_id: Mapped[str | None] = mapped_column(String(100), default=None)
    airtable_table_id: Mapped[str | None] = mapped_column(String(100), default=None)
    airtable_table_name: Mapped[str | None] = mapped_column(String(200), default=None)
    resend_from_name: Mapped[str | None] = mapped_column(String(200), default=None)
    resend_from_email: Mapped[str | None] = mapped_column(String(320), default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
