"""
FastAPI Application

Main entry point for the Traffic Flow Dashboard API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from trafficflow.config import get_settings
from trafficflow.config.logging import configure_logging
from trafficflow.serving.credentials import init_credential_store, close_credential_store
from trafficflow.serving.api import (
    RequestLoggingMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    register_exception_handlers,
)
from trafficflow.serving.api.routes import (
    auth_router,
    commerce_router,
    health_router,
    historical_router,
    realtime_router,
    status_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Traffic Flow Dashboard API")
    await init_credential_store()

    yield

    logger.info("Shutting down...")
    await close_credential_store()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Traffic Flow Dashboard API",
        description="GA4 / BigQuery traffic flow graphs with demographic and revenue enrichment",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["Auth"])
    app.include_router(historical_router, prefix="/api/v1/historical", tags=["Historical"])
    app.include_router(realtime_router, prefix="/api/v1/realtime", tags=["Realtime"])
    app.include_router(status_router, prefix="/api/v1/status", tags=["Status"])
    app.include_router(commerce_router, prefix="/api/v1", tags=["E-commerce"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Traffic Flow Dashboard API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
