from newsdesk.services.auth_service import (
    InvalidCredentialsError,
    UserAlreadyExistsError,
    authenticate_user,
    create_user,
    delete_user,
)
from newsdesk.services.schedule import generate_cron_expression, should_run

__all__ = [
    "create_user",
    "authenticate_user",
    "delete_user",
    "UserAlreadyExistsError",
    "InvalidCredentialsError",
    "generate_cron_expression",
    "should_run",
]
