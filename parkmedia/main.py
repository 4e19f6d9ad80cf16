"""
FastAPI application entry point for the ParkLookup media service.

This module provides:
- FastAPI application setup with middleware
- Prometheus metrics endpoint
- Health check and media route integration
- Global exception handling
"""

# Load environment variables BEFORE any other imports
from pathlib import Path
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .adapters.storage_s3 import s3_storage
from .api.media import router as media_router
from .core.config import settings
from .core.logging import create_request_id, get_logger, setup_logging, with_logging_context
from .media.ffmpeg_wrapper import ffmpeg_wrapper
from .models.db import db_manager
from .observability.metrics import get_metrics_response, metrics


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(description="Application status")
    timestamp: datetime = Field(description="Response timestamp")
    version: str = Field(description="Application version")
    environment: str = Field(description="Environment name")
    services: dict[str, str] = Field(description="Service health status")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown tasks."""
    logger = get_logger("app.lifespan")

    logger.info("Starting ParkLookup media service")

    try:
        db_manager.create_tables()

        # Warm the cached availability check so the first video upload does not pay for it
        await ffmpeg_wrapper.is_available()

        metrics.app_info.info({
            'version': settings.app.version,
            'environment': settings.app.environment,
            'name': settings.app.app_name
        })

        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise

    yield

    logger.info("Shutting down ParkLookup media service")
    db_manager.dispose()
    logger.info("Application shutdown completed")


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""

    setup_logging()
    logger = get_logger("app")

    app = FastAPI(
        title="ParkLookup Media API",
        description="Photo and video upload, normalization and transcoding for ParkLookup",
        version=settings.app.version,
        debug=settings.app.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.is_development else None,
        redoc_url="/redoc" if settings.app.is_development else None
    )

    setup_middleware(app)

    app.include_router(media_router, prefix="/api")

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Report the state of the database, object storage and encoder."""
        services = {
            "database": "healthy" if db_manager.health_check() else "unhealthy",
            "storage": "healthy" if s3_storage.health_check() else "unhealthy",
            "ffmpeg": "available" if await ffmpeg_wrapper.is_available() else "unavailable",
        }
        overall = "healthy" if services["database"] == "healthy" else "degraded"
        return HealthResponse(
            status=overall,
            timestamp=datetime.now(timezone.utc),
            version=settings.app.version,
            environment=settings.app.environment,
            services=services,
        )

    @app.get("/metrics", response_class=Response)
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        content, headers = get_metrics_response()
        return Response(content=content, headers=headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger = get_logger("app.error")

        with with_logging_context(request_id=getattr(request.state, 'request_id', None)):
            logger.error(
                "Unhandled exception in request",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                exc_info=True
            )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred",
                "request_id": getattr(request.state, 'request_id', None)
            }
        )

    logger.info(
        "FastAPI application created",
        version=settings.app.version,
        environment=settings.app.environment,
        debug=settings.app.debug
    )

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app.is_development else settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Content-Type",
            "Authorization",
            "X-Request-ID",
            "X-User-Id",
        ]
    )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Add request ID, logging context and request metrics."""
        request_id = request.headers.get("X-Request-ID") or create_request_id()
        request.state.request_id = request_id

        start_time = time.time()

        with with_logging_context(request_id=request_id):
            logger = get_logger("app.request")

            logger.info(
                "Request started",
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client else None
            )

            try:
                response = await call_next(request)
            except Exception as exc:
                duration = time.time() - start_time
                logger.error(
                    "Request failed with exception",
                    error=str(exc),
                    duration_seconds=round(duration, 3),
                    exc_info=True
                )
                metrics.track_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=500,
                    duration=duration
                )
                raise

            duration = time.time() - start_time
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_seconds=round(duration, 3)
            )
            metrics.track_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )

            response.headers["X-Request-ID"] = request_id
            return response


# Create application instance
app = create_application()


def main():
    """Run the application with Uvicorn."""
    uvicorn.run(
        "parkmedia.main:app",
        host=settings.app.api_host,
        port=settings.app.api_port,
        reload=settings.app.is_development,
        log_level=settings.app.log_level.lower(),
        access_log=True,
        server_header=False,
    )


if __name__ == "__main__":
    main()
