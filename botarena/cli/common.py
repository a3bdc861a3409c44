"""
Shared runtime for CLI commands: one engine per invocation, disposed on exit.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from botarena.config import get_settings
from botarena.database import build_engine, build_session_factory


@asynccontextmanager
async def engine_for(database_url: Optional[str] = None) -> AsyncIterator[AsyncEngine]:
    settings = get_settings()
    engine = build_engine(database_url or settings.database_url, echo=settings.sql_echo)
    try:
        yield engine
    finally:
        await engine.dispose()


@asynccontextmanager
async def session_factory_for(database_url: Optional[str] = None) -> AsyncIterator[async_sessionmaker]:
    async with engine_for(database_url) as engine:
        yield build_session_factory(engine)
