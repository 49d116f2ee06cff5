"""
Async SQLAlchemy engine and session factories.

PostgreSQL (asyncpg) is the production target. SQLite (aiosqlite) is
accepted for local runs and tests; an in-memory SQLite URL shares a single
connection so every session sees the same database.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    url = url or settings.DATABASE_URL
    echo = settings.ENVIRONMENT == "development" if echo is None else echo

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=echo, **kwargs)

    # Sessions are short-lived and the scheduler runs in the API process
    return create_async_engine(url, echo=echo, poolclass=NullPool)


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


engine = create_engine()
async_session_maker = create_session_maker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session, rolling back whatever the caller left uncommitted"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


def dialect_name(session: AsyncSession) -> str:
    """Name of the SQL dialect the session is bound to ("postgresql", "sqlite", ...)"""
    return session.bind.dialect.name
