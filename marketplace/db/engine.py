"""Async SQLAlchemy engine and session factory.

SQLite (aiosqlite) in dev and tests, PostgreSQL (asyncpg) in production.
"""
from __future__ import annotations

import ssl

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.settings import settings


def database_url(url: str) -> str:
    """Plain ``postgresql://`` URLs (as most hosts hand them out) get the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def engine_options(url: str) -> dict:
    options: dict = {"echo": False}
    if url.startswith("sqlite"):
        return options
    options.update({
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    })
    if settings.DB_SSL:
        options["connect_args"] = {"ssl": ssl.create_default_context()}
    return options


_db_url = database_url(settings.DATABASE_URL)
engine = create_async_engine(_db_url, **engine_options(_db_url))

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:
    """FastAPI dependency yielding one session per request."""
    async with async_session() as session:
        yield session
