"""Tests for the app-level endpoints and startup checks."""
from __future__ import annotations

import pytest

from config.settings import settings
from marketplace.api.main import APP_VERSION
from marketplace.startup_checks import validate_settings


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"app": "Marketplace Moderation API", "version": APP_VERSION}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["db"] == "connected"
    assert data["version"] == APP_VERSION


@pytest.mark.asyncio
async def test_ready(client):
    resp = await client.get("/ready")
    assert resp.status_code == 200
    assert resp.json() == {"ready": True}


def test_default_settings_pass_startup_checks():
    assert validate_settings() == []


def test_unordered_slas_warn(monkeypatch):
    monkeypatch.setattr(settings, "REPORT_SLA_URGENT_HOURS", 100)
    warnings = validate_settings()
    assert any("SLA" in w for w in warnings)


def test_prod_with_default_secret_exits(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql+asyncpg://db/marketplace")
    monkeypatch.setattr(settings, "JWT_SECRET", "marketplace-dev-secret-change-in-prod")
    with pytest.raises(SystemExit):
        validate_settings()
