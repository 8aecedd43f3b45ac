"""IaC Index FastAPI application."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request

from iac_index import __version__
from iac_index.cache import close_cache, get_cache, init_cache
from iac_index.config import get_settings
from iac_index.errors import ErrorCode, IndexServiceError
from iac_index.logging_config import setup_logging
from iac_index.middleware import CorrelationIdMiddleware, MetricsMiddleware
from iac_index.routes import policies_router, sources_router, templates_router
from iac_index.schemas.errors import ValidationErrorDetail, ValidationErrorResponse
from iac_index.schemas.source import CacheStats
from iac_index.services.policy_parser import reset_policy_parser
from iac_index.sources.registry import close_content_source, get_registry

settings = get_settings()
logger = logging.getLogger(__name__)


async def run_cache_cleanup(interval: float) -> None:
    """Sweep expired cache entries every `interval` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = get_cache().cleanup()
        if removed:
            logger.info("Cache cleanup", extra={"removed": removed, "size": get_cache().size()})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and the cache on startup; release the content source on shutdown."""
    setup_logging(settings.log_level, settings.log_json)
    logger.info("Starting IaC Index", extra={"version": __version__})

    init_cache()
    # Parser singleton holds a reference to the previous cache
    reset_policy_parser()
    cleanup_task = asyncio.create_task(run_cache_cleanup(settings.cache_cleanup_interval))
    yield

    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task

    logger.info("Shutting down, closing content source")
    await close_content_source()
    close_cache()


app = FastAPI(
    title="IaC Index",
    description="Parses Azure Policy definitions and Bicep/ARM templates into structured, searchable records.",
    version=__version__,
    lifespan=lifespan,
)

# Added last so it runs first and every log line carries the ID
app.add_middleware(MetricsMiddleware)
app.add_middleware(CorrelationIdMiddleware)


@app.get("/health")
async def health_check():
    """Liveness probe. Always 200 while the process is serving."""
    return {
        "status": "healthy",
        "version": __version__,
        "cache": CacheStats(**get_cache().stats()).model_dump(by_alias=True),
    }


@app.get("/ready")
async def readiness_check():
    """Readiness probe. 503 until at least one data source is registered."""
    names = get_registry().names()
    if not names:
        return JSONResponse(status_code=503, content={"status": "no_data_sources"})
    return {"status": "ready", "dataSources": names}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint.

    Includes:
    - http_requests_total / http_request_duration_seconds / http_requests_in_progress
    - policy_parse_total: policy parses by outcome (ok, cached, invalid)
    - template_extract_failures_total: degraded per-file extractions by kind
    - cache_requests_total: cache lookups by result (hit, miss)
    - index_build_duration_seconds: index build time by kind
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root():
    return {
        "name": "IaC Index",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "sources": "/sources",
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return make_error() bodies unchanged and wrap plain string details."""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": {"message": exc.detail}}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(IndexServiceError)
async def service_exception_handler(request: Request, exc: IndexServiceError):
    """Service errors that escaped a route keep their code and status."""
    logger.warning(f"Unhandled service error: {exc.message}", extra={"code": exc.code.value})
    return JSONResponse(status_code=exc.status_code, content=exc.to_error())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Report each invalid field with its location, e.g. ``body.fileName``
    or ``query.limit``, and a hint naming the field.
    """
    details = []
    for error in exc.errors():
        location = [str(part) for part in error["loc"]]
        name = location[-1] if location else "unknown"
        details.append(
            ValidationErrorDetail(
                code=ErrorCode.INVALID_FIELD.value,
                message=error["msg"],
                field=".".join(location),
                hint=f"Check the '{name}' field in your request.",
            )
        )

    body = ValidationErrorResponse(errors=details)
    return JSONResponse(status_code=422, content=body.model_dump())


app.include_router(policies_router)
app.include_router(templates_router)
app.include_router(sources_router)
