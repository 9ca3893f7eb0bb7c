"""FastAPI application entrypoint for the share register."""
from __future__ import annotations

import logging
from typing import cast

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from aktiebok.api.deps import http_error
from aktiebok.api.routes import register_routes
from aktiebok.core.config import Settings, get_settings
from aktiebok.core.logging import configure_logging
from aktiebok.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    metrics_router,
)
from aktiebok.services.errors import RegisterError

logger = logging.getLogger("aktiebok.main")


async def _register_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = http_error(cast(RegisterError, exc)).status_code
    logger.warning(
        "unhandled register error",
        extra={"path": request.url.path, "error": type(exc).__name__, "status": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_application(settings: Settings | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
    )
    application.state.settings = settings

    application.add_middleware(AuditMiddleware, settings=settings)
    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    application.add_exception_handler(RegisterError, _register_error_handler)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    logger.info("share register application created", extra={"app_version": settings.version})
    return application


app = create_application()
