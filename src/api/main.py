"""
FastAPI main application.

REST surface of the document generation service. Unless disabled, the
API process also runs the job poller and storage maintenance.
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from modules.generation.core.exceptions import BatchValidationException, JobNotFoundException
from src.api.config import get_api_settings
from src.api.services.generation_runtime import GenerationRuntime, build_runtime
from src.api.v1.models.responses import ErrorResponse, HealthResponse
from src.api.v1.router import api_router
from src.database.connection import close_connections
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

settings = get_api_settings()


def create_application(
    runtime: Optional[GenerationRuntime] = None,
    run_worker: Optional[bool] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        runtime: Prebuilt generation runtime (built from settings at startup when omitted)
        run_worker: Start poller and maintenance with the app (API_RUN_WORKER when omitted)

    Returns:
        Configured FastAPI application
    """
    start_worker = settings.RUN_WORKER if run_worker is None else run_worker
    owns_runtime = runtime is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.API_TITLE} v{settings.API_VERSION} ({settings.ENVIRONMENT})")
        if getattr(app.state, "runtime", None) is None:
            app.state.runtime = build_runtime()
        if start_worker:
            await app.state.runtime.start()

        yield

        if start_worker:
            await app.state.runtime.stop()
        if owns_runtime:
            await close_connections()
        logger.info(f"Shut down {settings.API_TITLE}")

    app = FastAPI(
        title=settings.API_TITLE,
        description=settings.API_DESCRIPTION,
        version=settings.API_VERSION,
        docs_url="/docs" if settings.ENABLE_DOCS else None,
        redoc_url="/redoc" if settings.ENABLE_DOCS else None,
        openapi_url="/openapi.json" if settings.ENABLE_DOCS else None,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    if settings.ENABLE_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=settings.CORS_METHODS,
            allow_headers=settings.CORS_HEADERS,
        )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next: Callable):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/health", tags=["health"], response_model=HealthResponse)
    async def health_check(request: Request):
        """
        Health check endpoint.

        Returns:
            Health status with poller state
        """
        poller = request.app.state.runtime.poller
        return HealthResponse(
            status="healthy",
            version=settings.API_VERSION,
            instance_id=poller.instance_id,
            polling=poller.running,
            in_flight_jobs=poller.in_flight,
        )

    # ==========================================================================
    # EXCEPTION HANDLERS
    # ==========================================================================

    @app.exception_handler(BatchValidationException)
    async def validation_exception_handler(_request: Request, exc: BatchValidationException):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="validation_failed",
                message="Generation request rejected",
                errors=exc.errors,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(JobNotFoundException)
    async def not_found_exception_handler(_request: Request, exc: JobNotFoundException):
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="not_found", message=str(exc)).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An internal server error occurred",
                "detail": str(exc) if settings.DEBUG else None,
            },
        )

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
