"""
Database setup.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from checkout.store._tables import Base


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    busy_timeout: float = 15.0,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """
    Create tables and return (session_factory, engine).

    Note: Concurrent writers need a file-backed SQLite URL; an in-memory
    database lives on a single connection.
    """
    connect_args = {"timeout": busy_timeout} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, echo=False, connect_args=connect_args)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


__all__ = ("create_database",)
