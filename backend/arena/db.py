import os
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool, StaticPool


engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[sessionmaker] = None
Base = declarative_base()


def _async_url(database_url: str) -> str:
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def get_engine() -> AsyncEngine:
    """Create the engine on first use from ``DATABASE_URL``.

    Importing this module does not touch the database, so tests can point
    ``DATABASE_URL`` somewhere else before the first call.
    """

    global engine, AsyncSessionLocal

    if engine is None:
        raw_url = os.getenv("DATABASE_URL")
        if not raw_url:
            raise RuntimeError("DATABASE_URL environment variable is required")
        database_url = _async_url(raw_url)

        engine_kwargs = {"echo": False}
        if database_url.startswith("sqlite+aiosqlite://"):
            # in-memory sqlite only lives as long as its single connection
            engine_kwargs["poolclass"] = (
                StaticPool if ":memory:" in database_url else NullPool
            )
        else:
            engine_kwargs["pool_pre_ping"] = True

        engine = create_async_engine(database_url, **engine_kwargs)
        AsyncSessionLocal = sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    return engine


async def get_session() -> AsyncSession:
    """FastAPI dependency yielding one session per request."""

    if AsyncSessionLocal is None:
        get_engine()

    assert AsyncSessionLocal is not None
    async with AsyncSessionLocal() as session:
        yield session
