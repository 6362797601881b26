"""Database configuration and session management"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator

from app.core.config import settings


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Enforce foreign keys and make SQLite transactions take the write lock up front.

    The rate-limit ledger relies on a conditional UPDATE inside a single
    transaction; with pysqlite's deferred BEGIN two writers can deadlock on
    lock promotion, so every transaction is opened with BEGIN IMMEDIATE.

    Args:
        engine: Async engine bound to a SQLite database
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, applying the SQLite locking recipe when needed."""
    if url.startswith("sqlite"):
        new_engine = create_async_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"timeout": 30},
        )
        configure_sqlite(new_engine)
        return new_engine
    return create_async_engine(url, echo=echo, future=True, pool_pre_ping=True)


# Create async engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Declarative base for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session for FastAPI routes.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables() -> None:
    """
    Create all database tables based on SQLAlchemy models.
    Called during application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

