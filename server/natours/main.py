"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from .core.config import settings
from .core.database import close_db, engine, init_db, ping_db
from .core.exceptions import register_exception_handlers
from .core.middleware import setup_middleware
from .core.observability import (
    SERVICE_NAME,
    SERVICE_VERSION,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import (
    bookings_router,
    metrics_router,
    reviews_router,
    tour_reviews_router,
    tours_router,
    users_router,
)

# Configure structured logging
setup_structured_logging()

# Configure traditional logging for compatibility
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    # Startup
    logger.info("Starting Natours API", extra={"environment": settings.environment, "debug": settings.debug})

    setup_tracing()
    setup_metrics()
    instrument_sqlalchemy(engine)
    logger.info("Observability setup completed")

    await init_db()
    logger.info("Database initialized successfully")

    Path(settings.static_dir, "img", "users").mkdir(parents=True, exist_ok=True)
    Path(settings.static_dir, "img", "tours").mkdir(parents=True, exist_ok=True)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down Natours API")
    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Starlette's debug traceback page would bypass generic_exception_handler
    app = FastAPI(
        title="Natours API",
        description="Tours, users, reviews and paid bookings for the Natours tour company",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    # Setup custom middleware
    setup_middleware(app, enable_logging=True)

    # Instrument FastAPI with OpenTelemetry
    instrument_fastapi(app)

    # Register exception handlers
    register_exception_handlers(app)

    # Health check endpoint (inline)
    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["ops"],
        summary="Health Check",
        description="Check if the service is up",
        response_model=dict,
    )
    async def health_check():
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
            "debug": settings.debug,
        }

    # Readiness check endpoint (inline)
    @app.get(
        "/ready",
        tags=["ops"],
        summary="Readiness Check",
        description="Check that the database answers queries",
    )
    async def readiness_check() -> JSONResponse:
        """
        Readiness check that runs ``SELECT 1`` against the database.

        Returns:
            JSONResponse: 200 when the database answers, 503 otherwise
        """
        try:
            await ping_db()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Readiness check failed", extra={"error": str(e)})
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unavailable", "service": SERVICE_NAME, "checks": {"database": "unavailable"}},
            )
        return JSONResponse(content={"status": "ready", "service": SERVICE_NAME, "checks": {"database": "ok"}})

    # Info endpoint (inline)
    @app.get(
        "/info",
        status_code=status.HTTP_200_OK,
        tags=["ops"],
        summary="Service Information",
        response_model=dict,
    )
    async def service_info():
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "description": "REST backend for tours, users, reviews and bookings",
            "environment": settings.environment,
            "debug": settings.debug,
            "features": {
                "authentication": "jwt",
                "payments": "razorpay",
                "email": "sendgrid" if settings.sendgrid_api_key else "disabled",
                "tracing": bool(settings.otlp_endpoint),
                "problem_details": True,
            },
            "endpoints": {
                "health": "/health",
                "readiness": "/ready",
                "info": "/info",
                "metrics": "/metrics",
                "api": "/api/v1",
                "docs": "/docs" if settings.debug else None,
            },
        }

    # Register API routers
    app.include_router(tours_router)
    app.include_router(tour_reviews_router)
    app.include_router(users_router)
    app.include_router(reviews_router)
    app.include_router(bookings_router)
    app.include_router(metrics_router)

    # Uploaded images
    app.mount(
        "/img",
        StaticFiles(directory=str(Path(settings.static_dir) / "img"), check_dir=False),
        name="img",
    )

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "natours.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
