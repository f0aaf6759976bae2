"""Async SQLModel engine and per-request sessions.

The engine is created by the application lifespan (or a script) and shared by
every request; each request gets its own AsyncSession, so a pipeline run never
shares session state with another run.
"""

import ssl
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import HTTPException
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.config.logger import app_logger
from app.config.settings import settings

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None

ASYNC_DRIVERS = {
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def get_db_url() -> str:
    """Resolve the configured URL to one with an async driver.

    ``sslmode`` is stripped from Postgres URLs: asyncpg takes SSL through
    ``connect_args`` instead.
    """
    raw = settings.effective_database_url
    if not raw:
        raise ValueError("DATABASE_URL not configured")

    url = make_url(raw)
    driver = ASYNC_DRIVERS.get(url.drivername, url.drivername)
    url = url.set(drivername=driver)
    if driver.startswith("postgresql") and "sslmode" in url.query:
        url = url.difference_update_query(["sslmode"])
    return url.render_as_string(hide_password=False)


def _engine_kwargs(db_url: str) -> dict:
    if not db_url.startswith("postgresql+asyncpg://"):
        return {"echo": False}

    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    return {
        "echo": False,
        "pool_size": 20,
        "max_overflow": 0,
        "pool_pre_ping": True,
        "connect_args": {"ssl": ssl_context},
    }


async def init_db() -> None:
    """Create the engine and the projects/sources/campaigns/generation_logs tables.

    A failure is logged, not raised: the API still starts and database-backed
    endpoints answer 503 until the service is restarted with a working URL.
    """
    global _engine, _session_maker

    try:
        db_url = get_db_url()
    except ValueError as e:
        app_logger.warning(f"{e}; database will not be initialized")
        return

    try:
        _engine = create_async_engine(db_url, **_engine_kwargs(db_url))
        _session_maker = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

        # Register the tables on SQLModel.metadata
        from app.models import project, source, campaign, generation_log  # noqa: F401

        async with _engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

        app_logger.info(f"Database initialized ({make_url(db_url).drivername})")

    except Exception as e:
        app_logger.error(f"Failed to initialize database ({type(e).__name__}): {e}")
        app_logger.warning("DATABASE CONNECTION FAILED - campaign endpoints will return 503")
        _engine = None
        _session_maker = None


async def close_db() -> None:
    global _engine, _session_maker

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_maker = None
        app_logger.info("Database connection closed")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if not _session_maker:
        raise HTTPException(
            status_code=503,
            detail="Database unavailable. Check DATABASE_URL and restart the service.",
        )

    async with _session_maker() as session:
        yield session


@asynccontextmanager
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for scripts running outside the web process."""
    if not _session_maker:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_maker() as session:
        yield session


async def ping_database() -> tuple[bool, str]:
    if not _engine or not _session_maker:
        return False, "Database not initialized"

    try:
        async with _session_maker() as session:
            row = (await session.execute(text("SELECT 1"))).scalar()
    except Exception as e:
        return False, f"Database query failed: {e}"
    if row == 1:
        return True, "Database connection healthy"
    return False, f"Unexpected response: {row}"
