"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dropship_service import __version__
from dropship_service.api.v1.router import api_router
from dropship_service.config import get_settings
from dropship_service.exceptions import DropshipError
from dropship_service.infrastructure.redis import close_redis
from dropship_service.integrations.cj import close_cj_client
from dropship_service.logging_config import configure_logging
from dropship_service.middleware.timing import TimingMiddleware

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting dropship service",
        app_env=settings.app_env,
        debug=settings.debug,
        cj_enabled=settings.cj_enabled,
        cj_tier=settings.cj_tier,
        webhook_url=settings.cj_webhook_url,
    )
    if settings.cj_enabled and not settings.cj_credentials_configured:
        logger.warning("CJ integration enabled without credentials, CJ calls will fail")
    if not settings.cj_webhook_secret:
        logger.warning("CJ webhook secret not set, webhooks are accepted unauthenticated")

    yield

    await close_cj_client()
    await close_redis()
    logger.info("Shutting down dropship service")


async def dropship_error_handler(request: Request, exc: DropshipError) -> JSONResponse:
    """Render service errors as JSON with their HTTP status."""
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
            **exc.context,
        )
    else:
        logger.info(
            "Request rejected",
            path=request.url.path,
            error=exc.message,
            status=exc.status_code,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Dropship Service API",
        description="Storefront catalog, cart and orders backed by CJ Dropshipping",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(TimingMiddleware, slow_request_ms=settings.slow_request_threshold_ms)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DropshipError, dropship_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dropship_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
