"""Async database engine and session management.

The engine and session maker are built once in the application lifespan and
kept on `app.state`; request handlers reach them only through `get_db`.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    # Bounded pool: once pool_size + max_overflow connections are checked out,
    # callers queue (FIFO) for up to pool_timeout seconds.
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        echo=settings.debug,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request) -> AsyncSession:
    """FastAPI dependency — yields an async session."""
    session_maker = request.app.state.session_maker
    async with session_maker() as session:
        yield session
