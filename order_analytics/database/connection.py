"""
Database Connection Management

Async engine and session factory (SQLAlchemy 2.0) for the order store.
The analytics engine only reads: PostgreSQL connections are opened with
read-only transactions and every session is rolled back when released.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional
import time

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from order_analytics.config import get_settings

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _connect_args(url: str, application_name: str) -> Dict[str, Any]:
    """Driver options; asyncpg sessions are tagged and forced read-only."""
    if make_url(url).get_driver_name() != "asyncpg":
        return {}
    return {
        "server_settings": {
            "application_name": application_name,
            "default_transaction_read_only": "on",
        }
    }


async def init_database() -> AsyncEngine:
    """
    Create the engine and verify the order store answers.

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    url = settings.database.async_url

    # asyncpg pools connections itself
    _engine = create_async_engine(
        url,
        echo=settings.database.echo,
        pool_pre_ping=True,
        poolclass=NullPool,
        connect_args=_connect_args(url, settings.app_name),
    )
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Order store unreachable", error=str(e), dialect=_engine.dialect.name)
        raise

    logger.info(
        "Order store connected",
        dialect=_engine.dialect.name,
        host=settings.database.host,
        database=settings.database.db,
    )
    return _engine


async def close_database() -> None:
    """Dispose of the engine and its connections."""
    global _engine, _session_factory

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Order store connections closed")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Read-only session over the order store.

    Example:
        async with get_db() as db:
            snapshot = await AnalyticsService(db, converter, resolver).kpis()
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_factory() as session:
        try:
            yield session
        except Exception as e:
            logger.error("Order store session failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            await session.rollback()


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with get_db() as session:
        yield session


async def check_database_health() -> Dict[str, Any]:
    """
    Ping the order store.

    Returns:
        dict: status plus latency, or the error when unreachable
    """
    start = time.perf_counter()
    try:
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - start) * 1000, 2),
    }
