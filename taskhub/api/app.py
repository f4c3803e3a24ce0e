"""
FastAPI application for TaskHub.

`create_app` builds the app around an explicitly constructed document
store. The store is opened in the lifespan and closed on shutdown; tests
pass their own settings and store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskhub.api import dashboard, projects, tasks, users
from taskhub.api.responses import error_response
from taskhub.auth import routes as auth_routes
from taskhub.auth.context import AuthenticationError
from taskhub.auth.ratelimit import configure_rate_limits, limiter
from taskhub.config import Settings, get_settings
from taskhub.core.results import ErrorCode
from taskhub.integrations.sentry import init_sentry
from taskhub.services import Services
from taskhub.storage import DocumentStore, create_storage

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Exception Handlers
# =============================================================================


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Every error leaves the API in the standard failure envelope."""

    @app.exception_handler(AuthenticationError)
    async def authentication_error(request: Request, exc: AuthenticationError):
        return error_response(exc.code, exc.message, status_code=401)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(request: Request, exc: RateLimitExceeded):
        logger.warning("Rate limit hit on %s from %s", request.url.path, get_remote_address(request))
        return error_response(
            ErrorCode.RATE_LIMIT_EXCEEDED,
            "Too many authentication attempts, please try again later",
            status_code=429,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part != "body"),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return error_response(
            ErrorCode.VALIDATION_ERROR, "Validation failed", details=details, status_code=400
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            code = ErrorCode.NOT_FOUND
        elif exc.status_code >= 500:
            code = ErrorCode.INTERNAL_ERROR
        else:
            code = ErrorCode.VALIDATION_ERROR
        return error_response(code, str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if settings.is_production else str(exc)
        return error_response(ErrorCode.INTERNAL_ERROR, message, status_code=500)


# =============================================================================
# App Factory
# =============================================================================


def create_app(settings: Settings | None = None, store: DocumentStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    store = store or create_storage(settings)
    services = Services.build(settings, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the store on startup, close it on shutdown."""
        configure_logging(settings)
        if init_sentry(settings):
            logger.info("Sentry error tracking enabled")

        await store.open()
        logger.info("TaskHub API starting in %s mode", settings.environment)

        yield

        await store.close()
        logger.info("TaskHub API shut down")

    app = FastAPI(
        title="TaskHub API",
        description="Multi-tenant task and project management",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    configure_rate_limits(settings)
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    for module in (auth_routes, users, projects, tasks, dashboard):
        app.include_router(module.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "taskhub-api", "environment": settings.environment}

    return app
