from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

logger = logging.getLogger(__name__)

ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}


class ErrorResponse(BaseModel):
    """Standardized error response payload."""

    error: str
    message: str
    details: Any | None = None
    # Mirrors `error` on public endpoints whose clients branch on `code`.
    code: str | None = None


class NewsdeskError(Exception):
    """Base error for domain failures that map onto an HTTP response."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error_code: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details


class ConfigurationError(NewsdeskError):
    """A required integration or setting is missing. Never retried."""

    status_code = HTTP_400_BAD_REQUEST

    def __init__(self, message: str, error_code: str = "not_configured") -> None:
        super().__init__(message, error_code)


class ProviderError(NewsdeskError):
    """An upstream provider answered with a non-2xx status."""

    status_code = HTTP_502_BAD_GATEWAY

    def __init__(self, provider: str, upstream_status: int | None, message: str) -> None:
        super().__init__(
            f"{provider} request failed ({upstream_status or 'no response'}): {message}",
            "provider_error",
            details={"provider": provider, "status": upstream_status},
        )
        self.provider = provider
        self.upstream_status = upstream_status


class NotFoundError(NewsdeskError):
    status_code = HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, "not_found")


class ConflictError(NewsdeskError):
    status_code = HTTP_409_CONFLICT

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message, "conflict", details)


class TokenError(NewsdeskError):
    """A signed link token is invalid or expired."""

    status_code = HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Invalid or expired link") -> None:
        super().__init__(message, "invalid_token")


def build_http_error(
    status_code: int,
    error: str,
    message: str,
    details: Any | None = None,
    headers: dict[str, str] | None = None,
    code: str | None = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(
            error=error, message=message, details=details, code=code
        ).model_dump(exclude_none=True),
        headers=headers,
    )


def _map_status_to_error(status_code: int) -> str:
    return ERROR_CODE_BY_STATUS.get(status_code, "error")


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        payload = ErrorResponse(
            error=_map_status_to_error(HTTP_500_INTERNAL_SERVER_ERROR),
            message=_status_phrase(HTTP_500_INTERNAL_SERVER_ERROR),
        ).model_dump(exclude_none=True)
        return JSONResponse(status_code=HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail and "message" in detail:
        payload = ErrorResponse.model_validate(detail).model_dump(exclude_none=True)
    else:
        payload = ErrorResponse(
            error=_map_status_to_error(exc.status_code),
            message=str(detail) if detail else _status_phrase(exc.status_code),
        ).model_dump(exclude_none=True)
    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
        headers=getattr(exc, "headers", None),
    )


def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, NewsdeskError):
        return unhandled_exception_handler(request, exc)
    if exc.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return domain_error_response(exc)


def domain_error_response(exc: NewsdeskError) -> JSONResponse:
    """Error envelope for ``exc``, for routes that answer with it instead of raising.

    Returning keeps the request transaction alive, so activity entries written
    before the failure are committed.
    """
    payload = ErrorResponse(
        error=exc.error_code,
        message=str(exc),
        details=exc.details,
    ).model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=payload)


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.exception("Unhandled exception", exc_info=exc)
    payload = ErrorResponse(
        error=_map_status_to_error(HTTP_500_INTERNAL_SERVER_ERROR),
        message=_status_phrase(HTTP_500_INTERNAL_SERVER_ERROR),
    ).model_dump(exclude_none=True)
    return JSONResponse(status_code=HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


def request_validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, RequestValidationError):
        payload = ErrorResponse(
            error=_map_status_to_error(HTTP_500_INTERNAL_SERVER_ERROR),
            message=_status_phrase(HTTP_500_INTERNAL_SERVER_ERROR),
        ).model_dump(exclude_none=True)
        return JSONResponse(status_code=HTTP_500_INTERNAL_SERVER_ERROR, content=payload)

    # Malformed input is a client error; keep it out of the error logs.
    payload = ErrorResponse(
        error="validation_error",
        message="Request validation failed",
        details=jsonable_errors(exc),
    ).model_dump(exclude_none=True)
    return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content=payload)


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


def rate_limit_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    payload = ErrorResponse(
        error=_map_status_to_error(429),
        message="Too many requests",
    ).model_dump(exclude_none=True)
    return JSONResponse(status_code=429, content=payload, headers=getattr(exc, "headers", None))
