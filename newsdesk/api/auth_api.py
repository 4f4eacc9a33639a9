from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.api.openapi_responses import (
    ErrorExample,
    error_responses,
    rate_limited_response,
    validation_error_response,
)
from newsdesk.api.schemas.auth_request_models import LoginUserRequest
from newsdesk.api.schemas.auth_response_models import AccessTokenResponse
from newsdesk.core.auth import create_access_token
from newsdesk.core.errors import build_http_error
from newsdesk.core.rate_limit import AUTH_LOGIN_RATE_LIMIT, limit, rate_limit_ip_key
from newsdesk.db.session import get_db
from newsdesk.services.auth_service import (
    AuthenticationError,
    InvalidCredentialsError,
    PasswordTooLongError,
    authenticate_user,
)

router = APIRouter()


@router.post(
    "/login",
    summary="Log in",
    description="Authenticate admin credentials and return a bearer access token.",
    response_model=AccessTokenResponse,
    responses={
        **error_responses(
            ErrorExample(
                status_code=status.HTTP_401_UNAUTHORIZED,
                error="invalid_credentials",
                message="Incorrect email or password",
                description="Invalid credentials",
                summary="Invalid email or password",
            ),
            ErrorExample(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                error="password_too_long",
                message="Password must not exceed 72 bytes when UTF-8 encoded",
                description="Invalid login input",
                summary="Password too long",
            ),
        ),
        **validation_error_response(),
        **rate_limited_response(),
    },
)
@limit(AUTH_LOGIN_RATE_LIMIT, key_func=rate_limit_ip_key)
async def login(
    request: Request,
    credentials: LoginUserRequest,
    db: AsyncSession = Depends(get_db),
) -> AccessTokenResponse:
    """Authenticate user and return JWT token."""
    try:
        user = await authenticate_user(credentials.email, credentials.password, db)
    except AuthenticationError as e:
        if isinstance(e, InvalidCredentialsError):
            status_code = status.HTTP_401_UNAUTHORIZED
        elif isinstance(e, PasswordTooLongError):
            status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
        else:
            status_code = status.HTTP_400_BAD_REQUEST
        headers = (
            {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
        )
        raise build_http_error(
            status_code=status_code,
            error=e.error_code,
            message=str(e),
            headers=headers,
        ) from e

    access_token = create_access_token(data={"sub": str(user.id)})

    return AccessTokenResponse(access_token=access_token)
