from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Optional

from pdfsplitter.core.config import Settings, settings as default_settings
from pdfsplitter.core.exceptions import SplitterError, error_response
from pdfsplitter.core.logging_config import logger
from pdfsplitter.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from pdfsplitter.api.v1.router import api_router
from pdfsplitter.modules.storage import JobRegistry, RetentionSweeper, purge_output_root
from pdfsplitter.modules.storage.job_registry import Clock
from pdfsplitter.services.artifact_writer import ArtifactWriter
from pdfsplitter.services.object_store import S3ObjectStore
from pdfsplitter.services.split_service import SplitService


AVAILABLE_ENDPOINTS = (
    "GET /health, POST /split, GET /jobs/:jobId/:fileName, "
    "GET /jobs/:jobId/manifest.json, DELETE /jobs/:jobId"
)

# Multipart framing on top of the PDF itself
MULTIPART_OVERHEAD = 1024 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    settings: Settings = app.state.settings

    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Port:        {settings.SERVER_PORT}")
    logger.info(f"Output dir:  {settings.OUTPUT_DIR}")
    logger.info(f"Retention:   {settings.JOB_RETENTION_MINUTES} minutes")
    logger.info("=" * 60)

    # Jobs never survive a restart, anything on disk is orphaned
    purge_output_root(settings.OUTPUT_DIR)

    object_store = app.state.object_store
    if object_store is not None:
        # Uploads stay enabled even if the probe fails, each upload falls back on its own
        if not await object_store.head_bucket():
            logger.warning("[Startup] Object storage not reachable - uploads will fall back to local URLs")
    else:
        logger.info("[Startup] Object storage disabled - serving artifacts locally only")

    await app.state.sweeper.start()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await app.state.sweeper.stop()
    await app.state.registry.purge()


async def splitter_exception_handler(request: Request, exc: SplitterError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": f"Invalid request: {field} {first.get('msg', '')}".strip(),
                "details": {"field": field},
            },
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": {
                    "code": "ENDPOINT_NOT_FOUND",
                    "message": f"Endpoint not found. Available endpoints: {AVAILABLE_ENDPOINTS}",
                    "details": {"path": request.url.path},
                },
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}},
        },
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: Optional[Settings] = None,
    object_store: Optional[S3ObjectStore] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the application with its own registry, writer and sweeper.

    object_store defaults to the one described by settings (None when
    storage is disabled or not configured).
    """
    settings = settings or default_settings
    if object_store is None:
        object_store = S3ObjectStore.from_settings(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Split multi-page PDFs into one file per submission",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        redirect_slashes=False
    )

    registry = JobRegistry(settings.JOB_RETENTION_SECONDS, clock=clock)
    writer = ArtifactWriter(settings.OUTPUT_DIR, object_store)
    app.state.settings = settings
    app.state.object_store = object_store
    app.state.registry = registry
    app.state.writer = writer
    app.state.split_service = SplitService(registry, writer, settings)
    app.state.sweeper = RetentionSweeper(registry, settings.JOB_SWEEP_INTERVAL_SECONDS)

    # Add middleware (order matters - last added runs first)
    # 1. Request logging (runs first for all requests)
    app.add_middleware(RequestLoggingMiddleware)

    # 2. Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # 3. Request size limit
    app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_UPLOAD_SIZE + MULTIPART_OVERHEAD)

    # 4. CORS - Origins from CORS_ORIGINS_STR in .env
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID", "X-Response-Time"],
    )

    # Exception handlers
    app.add_exception_handler(SplitterError, splitter_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {"error": str(exc)} if settings.DEBUG else {},
                },
            }
        )

    app.include_router(api_router)

    return app


app = create_app()


def run():
    import uvicorn
    uvicorn.run(
        "pdfsplitter.main:app",
        host=default_settings.SERVER_HOST,
        port=default_settings.SERVER_PORT,
        reload=default_settings.DEBUG
    )


if __name__ == "__main__":
    run()
