"""Alembic env.py: configured for the marketplace SQLAlchemy models."""
from __future__ import annotations

from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

from config.settings import settings

# Import all models so Alembic sees them
from marketplace.db.tables import Base
import marketplace.db.user_tables  # noqa: F401
import marketplace.db.review_tables  # noqa: F401
import marketplace.db.report_tables  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Get database URL, converting async drivers for Alembic (sync)."""
    url = settings.DATABASE_URL
    if "aiosqlite" in url:
        return url.replace("sqlite+aiosqlite", "sqlite")
    if "asyncpg" in url:
        return url.replace("postgresql+asyncpg", "postgresql")
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode: generates SQL script."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode: connects to DB directly."""
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
