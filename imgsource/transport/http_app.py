# imgsource/transport/http_app.py
"""
HTTP front for the image sources.

    GET /?url=https://cdn.example.com/photo.jpg

returns the remote image bytes with its cache-control headers. Source
failures map to 4xx/5xx JSON errors.

Run with ``imgsource`` (console script) or
``uvicorn imgsource.transport.http_app:app``.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from imgsource.config import APP_NAME, APP_VERSION, Settings, settings, validate_or_warn
from imgsource.infra.http_client import close_all_sessions
from imgsource.infra.image_types import detect_content_type
from imgsource.infra.logging_config import setup_logging, get_logger
from imgsource.infra.metrics import get_metrics_collector
from imgsource.sources.base import ImageSourceError
from imgsource.sources.registry import (
    SourceRegistry,
    build_source_config,
    register_default_sources,
)
from imgsource.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)

logger = get_logger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the FastAPI app with its source registry."""

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        setup_logging(app_settings.log_level, use_json=app_settings.use_json_logs)
        logger.info(
            f"Starting {APP_NAME} {APP_VERSION}: env={app_settings.app_env}, "
            f"sources={fastapi_app.state.registry.types()}"
        )
        validate_or_warn(app_settings)

        yield

        await close_all_sessions()
        logger.info("Application shutdown complete")

    registry = SourceRegistry()
    register_default_sources(registry)
    registry.build(build_source_config(app_settings))

    fastapi_app = FastAPI(
        title=APP_NAME,
        description="Remote image source for the image processing service",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url=None if app_settings.is_production else "/docs",
        redoc_url=None if app_settings.is_production else "/redoc",
        openapi_url=None if app_settings.is_production else "/openapi.json",
    )
    fastapi_app.state.registry = registry

    fastapi_app.add_middleware(ErrorHandlingMiddleware)
    fastapi_app.add_middleware(RequestLoggingMiddleware, enabled=app_settings.enable_request_logging)
    fastapi_app.add_middleware(RequestIDMiddleware)

    @fastapi_app.exception_handler(ImageSourceError)
    async def image_source_error_handler(request: Request, exc: ImageSourceError):
        """Map classified source failures to HTTP status codes"""
        if exc.status_code >= 500:
            logger.error(f"Upstream error: {exc}", extra={"request_id": getattr(request.state, "request_id", None)})

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc)},
        )

    @fastapi_app.get("/health")
    def health():
        """Basic health check for load balancers."""
        return {"status": "healthy", "version": APP_VERSION}

    @fastapi_app.get("/metrics")
    def metrics():
        return get_metrics_collector().get_metrics()

    @fastapi_app.get("/")
    async def fetch_image(request: Request):
        source = request.app.state.registry.match(request)
        if source is None:
            return JSONResponse(
                status_code=400,
                content={"error": "Missing or empty 'url' query parameter"},
            )

        result = await source.get_image_with_cache_headers(request)

        response = Response(content=result.data, media_type=detect_content_type(result.data))
        for name, value in result.headers.items():
            response.headers.append(name, value)
        return response

    return fastapi_app


app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "imgsource.transport.http_app:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
