"""
db/session.py
-------------
Async engine, session factory and the get_db request dependency.

PostgreSQL (asyncpg) in deployment gets a sized, pre-pinged pool. SQLite via
aiosqlite, used by the tests and local runs, keeps SQLAlchemy's default pool.

Sessions use expire_on_commit=False: the FrostGuard webhook route commits its
log row mid-request and keeps reading the row's id afterwards.
"""

from typing import Any, AsyncIterator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lorasim.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session per request: committed on success, rolled back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
