"""Request models for auth and user management endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field, field_validator

from newsdesk.api.schemas.common import CamelModel


def _validate_password_length(password: str | None) -> str | None:
    """Validate that password does not exceed 72 bytes when UTF-8 encoded.

    We use a 50 character limit to stay under the 72-byte bcrypt limit
    with multi-byte UTF-8 characters.
    """
    if password is not None and len(password.encode("utf-8")) > 72:
        raise ValueError("Password must not exceed 50 characters")
    return password


class LoginUserRequest(CamelModel):
    """Request model for admin login."""

    email: EmailStr = Field(..., max_length=320, description="Valid email address")
    password: str = Field(..., min_length=1, max_length=50, description="Account password")

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        _validate_password_length(v)
        return v


class CreateUserRequest(CamelModel):
    """Request model for creating an admin user."""

    email: EmailStr = Field(..., max_length=320, description="Valid email address")
    password: str = Field(
        ...,
        min_length=8,
        max_length=50,
        description="Password between 8 and 50 characters",
    )
    name: str | None = Field(default=None, max_length=200)
    role: Literal["admin"] = "admin"

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        _validate_password_length(v)
        return v


class UpdateUserRequest(CamelModel):
    email: EmailStr | None = Field(default=None, max_length=320)
    password: str | None = Field(default=None, min_length=8, max_length=50)
    name: str | None = Field(default=None, max_length=200)
    role: Literal["admin"] | None = None

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str | None) -> str | None:
        return _validate_password_length(v)
