"""
Database Connection Module
Builds SQLAlchemy async engines and session factories for the SQL store.
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


# Base class for all our models
class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite (used by tests) shares one connection so an in-memory database
    survives across sessions.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo, poolclass=StaticPool)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new database sessions."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False  # Objects remain accessible after commit
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # Register the mapped classes on Base.metadata
    from snappy_serve import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def wait_for_db(engine: AsyncEngine, timeout: float) -> None:
    """
    Initialize the schema, giving up after ``timeout`` seconds.

    Raises:
        asyncio.TimeoutError: The database did not answer in time
        sqlalchemy.exc.SQLAlchemyError / OSError: The connection failed
    """
    await asyncio.wait_for(init_db(engine), timeout=timeout)


async def ping(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
