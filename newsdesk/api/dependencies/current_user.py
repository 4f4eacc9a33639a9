"""Dependency that provides the authenticated user from the request."""

from __future__ import annotations

from fastapi import Depends, status

from newsdesk.api.dependencies.unit_of_work import UnitOfWork, get_uow
from newsdesk.core.auth import oauth2_scheme, verify_token
from newsdesk.core.errors import build_http_error
from newsdesk.db.models.user import User
from newsdesk.services.auth_service import UserNotFoundError, get_user


async def get_current_user(
    token: str = Depends(oauth2_scheme), uow: UnitOfWork = Depends(get_uow)
) -> User:
    """FastAPI dependency to get the current authenticated user."""
    credentials_exception = build_http_error(
        status_code=status.HTTP_401_UNAUTHORIZED,
        error="unauthorized",
        message="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise credentials_exception

    try:
        return await get_user(user_id, uow.session)
    except UserNotFoundError:
        raise credentials_exception from None
