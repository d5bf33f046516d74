"""Main FastAPI application module."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from sarcasm_wiki.api.router import router as v1_router
from sarcasm_wiki.core.config import Settings
from sarcasm_wiki.core.logging import configure_logging, get_logger
from sarcasm_wiki.middleware.correlation import CorrelationMiddleware
from sarcasm_wiki.service import ArticleService, build_service

logger = get_logger().bind(module="main")


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    """Turn unhandled errors into a JSON 500 carrying the correlation ID."""
    correlation_id = getattr(request.state, "correlation_id", None)
    logger.error(
        "Unhandled error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": type(exc).__name__,
            "message": "Internal server error",
            "status_code": HTTP_500_INTERNAL_SERVER_ERROR,
            "correlation_id": correlation_id or "unknown",
        },
    )


def create_app(settings: Settings | None = None, service: ArticleService | None = None) -> FastAPI:
    """Create the application.

    Args:
        settings: Application settings; read from the environment when omitted
        service: Prebuilt article service; built from settings at startup when
            omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "service", None) is None:
            app.state.service = build_service(settings)
        processor = app.state.service.processor
        if settings.PROCESSOR_ENABLED:
            processor.start()
        logger.info(
            "Application started",
            processor_enabled=settings.PROCESSOR_ENABLED,
            immediate_generation=settings.IMMEDIATE_GENERATION,
        )
        try:
            yield
        finally:
            await processor.stop()
            logger.info("Application stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Satirical rewrites of encyclopedia articles, generated on demand",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(CorrelationMiddleware)
    app.add_exception_handler(Exception, handle_exception)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router, prefix=settings.api_prefix)
    return app


def build_app() -> FastAPI:
    """Factory for ``uvicorn --factory``."""
    settings = Settings()
    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
    return create_app(settings)
