"""Tests for engine URL and pool configuration."""
from config.settings import settings
from marketplace.db.engine import database_url, engine_options


def test_plain_postgres_url_gets_async_driver():
    assert database_url("postgresql://u:p@db/market") == "postgresql+asyncpg://u:p@db/market"
    assert database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


def test_sqlite_has_no_pool_options():
    assert engine_options("sqlite+aiosqlite:///x.db") == {"echo": False}


def test_postgres_pool_options(monkeypatch):
    monkeypatch.setattr(settings, "DB_SSL", True)
    opts = engine_options("postgresql+asyncpg://u:p@db/market")
    assert opts["pool_size"] == settings.DB_POOL_SIZE
    assert opts["pool_pre_ping"] is True
    assert "ssl" in opts["connect_args"]
