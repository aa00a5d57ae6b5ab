"""
FastAPI Application

Main entry point for the Order Analytics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from order_analytics.config import get_settings
from order_analytics.config.logging import configure_logging
from order_analytics.database.connection import init_database, close_database
from order_analytics.serving.api.middleware import RequestLoggingMiddleware
from order_analytics.serving.api.routes import analytics_router, health_router

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info(
        "Starting Order Analytics API",
        environment=settings.app_env,
        base_currency=settings.analytics.base_currency,
    )

    try:
        await init_database()
    except Exception as e:
        # health endpoints report the outage; reports fail until the store is back
        logger.warning("Database init failed", error=str(e), error_type=type(e).__name__)

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Order Analytics API",
    description="KPIs, order trends, product rankings and customer segmentation across shops and currencies",
    version=settings.version,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Order Analytics API",
        "version": settings.version,
        "environment": settings.app_env,
        "base_currency": settings.analytics.base_currency,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
