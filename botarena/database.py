"""
botarena/database.py
Async engine and session factory configuration
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker

# Import Base from orm.base to avoid circular imports
from botarena.orm.base import Base
import botarena.orm  # noqa: F401  ensures all models are registered

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite gets a busy timeout so concurrent writers wait for the file lock
    instead of failing immediately.
    """
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    if "sqlite" in database_url.lower():
        return create_async_engine(
            database_url,
            echo=echo,
            future=True,
            connect_args={
                "timeout": 30.0,   # SQLite busy timeout in seconds
            }
        )

    # PostgreSQL/MySQL: Use standard pool with larger size
    return create_async_engine(
        database_url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        pool_size=20,           # Base pool size
        max_overflow=30,        # Additional connections under load
        pool_timeout=30,        # Wait up to 30s for connection
        pool_recycle=3600,      # Recycle connections after 1 hour
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(bind: AsyncEngine) -> None:
    """Create all schema and engine tables. Idempotent."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database tables created ({len(Base.metadata.tables)} tables)")
