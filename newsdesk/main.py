from __future__ import annotations

import logging
import sys
import types
from collections.abc import Callable
from importlib.metadata import PackageNotFoundError, version
from typing import Any, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ExceptionHandler

from newsdesk.api.redirect_api import short_link_router
from newsdesk.api.router import router as api_router
from newsdesk.core.config import InvalidSettingsError, MissingRequiredSettingsError
from newsdesk.core.errors import (
    NewsdeskError,
    domain_exception_handler,
    http_exception_handler,
    rate_limit_exception_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from newsdesk.core.lifespan import lifespan
from newsdesk.core.logging import configure_logging
from newsdesk.core.rate_limit import limiter
from newsdesk.providers.factory import ProviderFactory
from newsdesk.services.activity_service import activity_logger_factory_provider
from newsdesk.services.content_service import content_service_factory_provider
from newsdesk.services.distribution_service import distribution_service_factory_provider
from newsdesk.services.ingestion_service import ingestion_service_factory_provider
from newsdesk.services.integration_service import integration_service_factory_provider
from newsdesk.services.prompt_service import prompt_service_factory_provider
from newsdesk.services.redirect_service import redirect_service_factory_provider
from newsdesk.services.resend_admin_service import resend_admin_service_factory_provider
from newsdesk.services.sequence_service import sequence_service_factory_provider
from newsdesk.services.short_link_service import short_link_service_factory_provider
from newsdesk.services.subscriber_service import subscriber_service_factory_provider
from newsdesk.services.template_service import template_service_factory_provider
from newsdesk.services.webhook_service import webhook_service_factory_provider
from newsdesk.services.weekly_newsletter_service import (
    weekly_newsletter_service_factory_provider,
)

# Import settings - this may raise MissingRequiredSettingsError
try:
    from newsdesk.core.config import settings
except MissingRequiredSettingsError as e:
    print("ERROR: Missing required environment variables:", file=sys.stderr)
    for field in e.missing_fields:
        print(f"  - {field}", file=sys.stderr)
    print(
        "\nPlease set these in your .env file (see env.example for reference)",
        file=sys.stderr,
    )
    sys.exit(1)
except InvalidSettingsError as e:
    print("ERROR: Invalid environment variable values:", file=sys.stderr)
    for field, message in e.invalid_fields:
        print(f"  - {field}: {message}", file=sys.stderr)
    print(
        "\nPlease update these in your .env file (see env.example for reference)",
        file=sys.stderr,
    )
    sys.exit(1)


def build_services(factory: ProviderFactory) -> dict[str, Callable[[AsyncSession], Any]]:
    """Session-scoped service builders, keyed as the Unit of Work resolves them."""
    return {
        "activity_logger": activity_logger_factory_provider(),
        "content_service": content_service_factory_provider(),
        "distribution_service": distribution_service_factory_provider(factory),
        "ingestion_service": ingestion_service_factory_provider(factory),
        "integration_service": integration_service_factory_provider(factory),
        "prompt_service": prompt_service_factory_provider(),
        "redirect_service": redirect_service_factory_provider(),
        "resend_admin_service": resend_admin_service_factory_provider(factory),
        "sequence_service": sequence_service_factory_provider(),
        "short_link_service": short_link_service_factory_provider(),
        "subscriber_service": subscriber_service_factory_provider(factory),
        "template_service": template_service_factory_provider(),
        "webhook_service": webhook_service_factory_provider(),
        "weekly_newsletter_service": weekly_newsletter_service_factory_provider(factory),
    }


def create_app(provider_factory: ProviderFactory | None = None) -> FastAPI:
    configure_logging()

    try:
        api_version = version("newsdesk-api")
    except PackageNotFoundError:
        api_version = "0.1.0"  # Fallback if package not installed
        logging.warning("newsdesk-api package not found, using fallback version 0.1.0")

    is_debug_mode = settings.environment == "local"
    app = FastAPI(
        title=settings.app_name,
        version=api_version,
        debug=is_debug_mode,
        lifespan=lifespan,
    )
    app.add_exception_handler(
        StarletteHTTPException, cast(ExceptionHandler, http_exception_handler)
    )
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, request_validation_exception_handler)
    )
    app.add_exception_handler(
        RateLimitExceeded, cast(ExceptionHandler, rate_limit_exception_handler)
    )
    app.add_exception_handler(NewsdeskError, cast(ExceptionHandler, domain_exception_handler))
    app.add_exception_handler(Exception, cast(ExceptionHandler, unhandled_exception_handler))
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.include_router(api_router, prefix="/api")
    app.include_router(short_link_router)

    app.state.services = types.MappingProxyType(
        build_services(provider_factory or ProviderFactory())
    )

    return app


app = create_app()
