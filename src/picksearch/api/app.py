"""FastAPI application for Picksearch webhook operations."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from picksearch import __version__
from picksearch.config import Settings
from picksearch.exceptions import (
    ConfigurationError,
    NotFoundError,
    PicksearchError,
    ValidationError,
)
from picksearch.logging import configure_from_settings, get_logger
from picksearch.webhooks import WebhookDispatcher, set_dispatcher

from .router import router

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    dispatcher: WebhookDispatcher | None = None,
) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.
        dispatcher: Dispatcher to expose. The host application passes its
            own so replays can resolve partners; a default one is built
            from settings otherwise.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_from_settings(settings)
        active = dispatcher or WebhookDispatcher(settings=settings)
        set_dispatcher(active)
        logger.info("api_started", env=settings.env, log_level=settings.log_level)

        yield

        await active.aclose(timeout=settings.webhook_timeout_seconds)
        set_dispatcher(None)
        logger.info("api_stopped")

    app = FastAPI(
        title="Picksearch Webhooks",
        description="Partner webhook delivery: inspection and dead-letter replay.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle validation errors with 400 status."""
        logger.warning(
            "validation_error", field=exc.field, error=exc.message, path=str(request.url)
        )
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle not found errors with 404 status."""
        logger.info(
            "resource_not_found",
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            path=str(request.url),
        )
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle configuration errors with 503 status."""
        logger.error("configuration_error", error=exc.message, path=str(request.url))
        return JSONResponse(status_code=503, content=exc.to_dict())

    @app.exception_handler(PicksearchError)
    async def picksearch_error_handler(request: Request, exc: PicksearchError) -> JSONResponse:
        """Handle all other Picksearch errors with 500 status."""
        logger.error("picksearch_error", error=exc.message, code=exc.code, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())

    app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
