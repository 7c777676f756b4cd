"""
Database configuration and session management.

The engine is created from the pipeline config at boot. A disabled
database is replaced by a private in-memory SQLite database so the rest
of the pipeline keeps a single storage contract.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from acars_processor.core.config import DatabaseConfig
from acars_processor.core.exceptions import StoreError

logger = logging.getLogger(__name__)

MEMORY_URL = "sqlite+aiosqlite://"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def get_async_database_url(url: str) -> str:
    """Convert sync database URL to async version."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def database_url(config: DatabaseConfig) -> str:
    """Build the async database URL for a database config."""
    if not config.enabled:
        return MEMORY_URL
    if config.type == "sqlite":
        return f"sqlite+aiosqlite:///{config.sqlite_database_path}"
    if not config.connection_string:
        raise StoreError(
            "Database connection string is required",
            {"type": config.type},
        )
    return get_async_database_url(config.connection_string)


def create_engine(url: str) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    if url == MEMORY_URL or url.endswith(":memory:"):
        # A single shared connection keeps the in-memory database alive
        return create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=180,
        pool_size=3,
        max_overflow=7,
        pool_timeout=10,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine):
    """Initialize database tables."""
    # Models must be registered on Base.metadata before create_all
    from acars_processor import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (SQLAlchemyError, OSError) as e:
        raise StoreError("Unable to initialize database", {"error": str(e)})
    logger.info(f"Database initialized at {engine.url.render_as_string(hide_password=True)}")


async def close_db(engine: AsyncEngine):
    """Close database connections."""
    await engine.dispose()
