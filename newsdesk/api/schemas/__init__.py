"""API request and response schemas.

Import request/response models from the submodules (e.g. sequence_request_models,
sequence_response_models). The shared bases and the auth and meta models are
re-exported here.
"""

from __future__ import annotations

from newsdesk.api.schemas.auth_request_models import (
    CreateUserRequest,
    LoginUserRequest,
    UpdateUserRequest,
)
from newsdesk.api.schemas.auth_response_models import (
    AccessTokenResponse,
    DeleteUserResponse,
    UserResponse,
)
from newsdesk.api.schemas.common import CamelModel, CamelResponse, SuccessResponse
from newsdesk.api.schemas.meta_response_models import ActivityEntryResponse, HealthResponse

__all__ = [
    "AccessTokenResponse",
    "ActivityEntryResponse",
    "CamelModel",
    "CamelResponse",
    "CreateUserRequest",
    "DeleteUserResponse",
    "HealthResponse",
    "LoginUserRequest",
    "SuccessResponse",
    "UpdateUserRequest",
    "UserResponse",
]
