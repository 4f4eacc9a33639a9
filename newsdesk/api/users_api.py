"""Admin user management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from newsdesk.api.dependencies import UnitOfWork, get_current_user, get_uow
from newsdesk.api.openapi_responses import (
    ErrorExample,
    admin_responses,
    not_found_response,
)
from newsdesk.api.schemas.auth_request_models import CreateUserRequest, UpdateUserRequest
from newsdesk.api.schemas.auth_response_models import DeleteUserResponse, UserResponse
from newsdesk.core.errors import build_http_error
from newsdesk.db.models.user import User
from newsdesk.services.auth_service import (
    AuthenticationError,
    PasswordTooLongError,
    UserNotFoundError,
    create_user,
    delete_user,
    get_user,
    list_users,
    update_user,
)

router = APIRouter(dependencies=[Depends(get_current_user)])

_USER_EXISTS = ErrorExample(
    status_code=status.HTTP_409_CONFLICT,
    error="user_exists",
    message="Email already registered",
    description="Email already registered",
    summary="User already exists",
)


def _auth_http_error(exc: AuthenticationError) -> HTTPException:
    if isinstance(exc, UserNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PasswordTooLongError):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_409_CONFLICT
    return build_http_error(status_code=status_code, error=exc.error_code, message=str(exc))


@router.get("", summary="List users", response_model=list[UserResponse])
async def list_all_users(uow: UnitOfWork = Depends(get_uow)) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in await list_users(uow.session)]


@router.post(
    "",
    summary="Create user",
    description="Create an admin user. The password is stored as a bcrypt hash.",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses=admin_responses(_USER_EXISTS),
)
async def create(
    payload: CreateUserRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> UserResponse:
    try:
        user = await create_user(
            payload.email, payload.password, uow.session, name=payload.name, role=payload.role
        )
    except AuthenticationError as e:
        raise _auth_http_error(e) from e
    return UserResponse.model_validate(user)


@router.get(
    "/{user_id}",
    summary="Get user",
    response_model=UserResponse,
    responses=not_found_response("User not found"),
)
async def get_one(user_id: str, uow: UnitOfWork = Depends(get_uow)) -> UserResponse:
    try:
        return UserResponse.model_validate(await get_user(user_id, uow.session))
    except AuthenticationError as e:
        raise _auth_http_error(e) from e


@router.patch(
    "/{user_id}",
    summary="Update user",
    response_model=UserResponse,
    responses={**admin_responses(_USER_EXISTS), **not_found_response("User not found")},
)
async def update(
    user_id: str,
    payload: UpdateUserRequest,
    uow: UnitOfWork = Depends(get_uow),
) -> UserResponse:
    try:
        user = await update_user(
            user_id,
            uow.session,
            email=payload.email,
            password=payload.password,
            name=payload.name,
            role=payload.role,
        )
    except AuthenticationError as e:
        raise _auth_http_error(e) from e
    return UserResponse.model_validate(user)


@router.delete(
    "/{user_id}",
    summary="Delete user",
    description="Delete an admin user. Users cannot delete their own account.",
    response_model=DeleteUserResponse,
    responses=not_found_response("User not found"),
)
async def delete(
    user_id: str,
    uow: UnitOfWork = Depends(get_uow),
    current_user: User = Depends(get_current_user),
) -> DeleteUserResponse:
    if current_user.id == user_id:
        raise build_http_error(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="cannot_delete_self",
            message="Cannot delete your own account",
        )
    try:
        deleted_id = await delete_user(user_id, uow.session)
    except AuthenticationError as e:
        raise _auth_http_error(e) from e
    return DeleteUserResponse(deleted_user_id=deleted_id)
