"""Response models for auth and user management endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from newsdesk.api.schemas.common import CamelResponse


class AccessTokenResponse(BaseModel):
    """Response model for authentication token."""

    access_token: str
    token_type: str = "bearer"


class UserResponse(CamelResponse):
    """Response model for user information."""

    id: str
    email: str
    name: str | None = None
    role: str
    created_at: datetime


class DeleteUserResponse(CamelResponse):
    """Response model for user deletion."""

    deleted_user_id: str
