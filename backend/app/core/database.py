"""
Database connection management with SQLAlchemy async.
Provides the engine and session factory behind the SQL document store.

For development, the database is optional - the app falls back to the
in-memory document store when it is unreachable.
"""
import re

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Flag to track if database is available
_db_available: bool = False


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


def normalize_database_url(database_url: str) -> str:
    """Rewrite plain postgres URLs to the asyncpg driver."""
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine with proper configuration."""
    database_url = normalize_database_url(database_url or settings.database_url)

    sanitized = re.sub(r":([^:@/]+)@", ":***@", database_url)
    logger.info("Creating database engine", url=sanitized)

    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=settings.database_echo)

    return create_async_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


# Global engine and session factory
engine = create_engine()
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)



async def init_db() -> None:
    """
    Initialize database tables.

    If the connection fails the app keeps running on the in-memory
    document store.
    """
    global _db_available

    # Register ORM models on the metadata
    from app.models import document  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        _db_available = True
        logger.info("Database initialized")
    except Exception as e:
        _db_available = False
        logger.warning(
            "Database connection failed - running with in-memory document store",
            error=str(e),
        )


def is_db_available() -> bool:
    """Check if database is available."""
    return _db_available


async def close_db() -> None:
    """Close database connections."""
    if _db_available:
        await engine.dispose()
        logger.info("Database connections closed")
    else:
        logger.info("No database connections to close (in-memory mode)")
