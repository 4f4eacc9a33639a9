"""Admin user service layer - login and user management."""

from __future__ import annotations

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.auth import get_password_hash, verify_password
from newsdesk.core.signing import normalize_email
from newsdesk.db.models.user import User


class AuthenticationError(Exception):
    """Base error for authentication-related failures."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class UserAlreadyExistsError(AuthenticationError):
    """Raised when attempting to create a user that already exists."""

    def __init__(self, message: str = "Email already registered") -> None:
        super().__init__(message, "user_exists")


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self, message: str = "Incorrect email or password") -> None:
        super().__init__(message, "invalid_credentials")


class PasswordTooLongError(AuthenticationError):
    """Raised when password exceeds the maximum allowed length (72 bytes)."""

    def __init__(
        self, message: str = "Password must not exceed 72 bytes when UTF-8 encoded"
    ) -> None:
        super().__init__(message, "password_too_long")


class UserNotFoundError(AuthenticationError):
    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message, "not_found")


def _hash(password: str) -> str:
    try:
        return get_password_hash(password)
    except ValueError as e:
        raise PasswordTooLongError() from e


async def create_user(
    email: str,
    password: str,
    db: AsyncSession,
    name: str | None = None,
    role: str = "admin",
) -> User:
    """Create an admin user.

    Args:
        email: User's email address (stored lowercased)
        password: Plain text password (will be hashed)
        db: Database session
        name: Optional display name
        role: User role

    Returns:
        The newly created User object

    Raises:
        UserAlreadyExistsError: If email is already registered
        PasswordTooLongError: If password exceeds 72 bytes when UTF-8 encoded
    """
    email = normalize_email(email)
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise UserAlreadyExistsError()

    hashed_password = _hash(password)

    try:
        result = await db.execute(
            insert(User)
            .values(email=email, hashed_password=hashed_password, name=name, role=role)
            .returning(User)
        )
        new_user = result.scalar_one()
    except IntegrityError as e:
        # asyncpg raises UniqueViolationError (error code 23505) for unique constraint violations
        error_str = str(e.orig).lower()
        if (
            "unique" in error_str
            or "duplicate" in error_str
            or "23505" in str(e.orig)  # PostgreSQL unique violation error code
            or "ix_users_email" in error_str  # Constraint name
        ):
            raise UserAlreadyExistsError() from e
        raise

    return new_user


async def authenticate_user(email: str, password: str, db: AsyncSession) -> User:
    """Authenticate a user with email and password.

    Raises:
        InvalidCredentialsError: If email or password is incorrect
        PasswordTooLongError: If password exceeds 72 bytes when UTF-8 encoded
    """
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    user = result.scalar_one_or_none()

    if user is None:
        raise InvalidCredentialsError()

    try:
        password_valid = verify_password(password, user.hashed_password)
    except ValueError as e:
        raise PasswordTooLongError() from e

    if not password_valid:
        raise InvalidCredentialsError()

    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all())


async def get_user(user_id: str, db: AsyncSession) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


async def update_user(
    user_id: str,
    db: AsyncSession,
    *,
    email: str | None = None,
    password: str | None = None,
    name: str | None = None,
    role: str | None = None,
) -> User:
    """Update the given fields; a new password is re-hashed."""
    user = await get_user(user_id, db)
    if email is not None and normalize_email(email) != user.email:
        email = normalize_email(email)
        existing = await db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            raise UserAlreadyExistsError()
        user.email = email
    if password:
        user.hashed_password = _hash(password)
    if name is not None:
        user.name = name
    if role is not None:
        user.role = role
    await db.flush()
    return user


async def delete_user(user_id: str, db: AsyncSession) -> str:
    """Delete an admin user.

    Note:
        This performs a hard delete.
    """
    await get_user(user_id, db)
    await db.execute(delete(User).where(User.id == user_id))
    return user_id
