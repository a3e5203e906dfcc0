"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from alignzo.api import router as api_router
from alignzo.cache import TTLCache
from alignzo.config import get_settings
from alignzo.db.session import close_db, init_db
from alignzo.exceptions import AlignzoError
from alignzo.logging_config import setup_logging
from alignzo.middleware.logging import LoggingMiddleware
from alignzo.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    setup_logging()
    logger.info("Starting Alignzo API", version=settings.app_version)
    await init_db()
    logger.info("Database connection initialized")

    yield

    logger.info("Shutting down Alignzo API")
    await close_db()
    logger.info("Database connection closed")


async def alignzo_error_handler(request: Request, exc: AlignzoError) -> ORJSONResponse:
    """Render domain errors as ``{success: false, error, code}``."""
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "request_error",
        code=exc.code,
        error=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
    )
    content = {"success": False, "error": exc.message, "code": exc.code}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return ORJSONResponse(status_code=exc.status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Work tracking, kanban and ticket operations for IT operations teams",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # One cache per application, handed to handlers through a dependency
    app.state.cache = TTLCache(ttl_seconds=settings.cache_ttl_seconds)

    app.add_exception_handler(AlignzoError, alignzo_error_handler)

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
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the load balancer
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
