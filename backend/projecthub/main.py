"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from projecthub.api import router as api_router
from projecthub.config import get_settings
from projecthub.db.session import close_db, init_db
from projecthub.exceptions import (
    CascadeIntegrityError,
    NotFoundError,
    ProjectHubError,
    ValidationError,
)
from projecthub.logging_setup import configure_logging
from projecthub.middleware.logging import LoggingMiddleware
from projecthub.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    configure_logging(settings)
    logger.info("api_starting", version=settings.app_version, environment=settings.environment)
    await init_db()
    logger.info("database_ready")

    yield

    logger.info("api_stopping")
    await close_db()


# =============================================================================
# Error mapping
# =============================================================================


async def validation_error_handler(request: Request, exc: ValidationError) -> ORJSONResponse:
    logger.info("validation_failed", code=exc.code, fields=sorted(exc.by_field()))
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "code": exc.code, "errors": exc.by_field()},
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": exc.message, "code": exc.code},
    )


async def cascade_error_handler(request: Request, exc: CascadeIntegrityError) -> ORJSONResponse:
    logger.error(
        "cascade_integrity_error",
        property_id=str(exc.property_id),
        remaining=exc.remaining,
    )
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": exc.message, "code": exc.code},
    )


async def projecthub_error_handler(request: Request, exc: ProjectHubError) -> ORJSONResponse:
    logger.error("unhandled_domain_error", code=exc.code, error=exc.message)
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Task management core: custom properties, validation and task queries",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the ingress
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(CascadeIntegrityError, cascade_error_handler)
    app.add_exception_handler(ProjectHubError, projecthub_error_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
