"""
Database engine and request-scoped sessions for the bookmarks store.

DATABASE_URL selects the backend: PostgreSQL through asyncpg in production, SQLite
through aiosqlite for a single-host install.
"""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import get_settings


settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield one session per request (FastAPI dependency).

    Bookmark services only flush(); the commit happens here once the route has
    returned, so a create or delete that raises leaves no partial row behind.
    Blob writes made during the request are not covered by this rollback.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
