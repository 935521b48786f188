"""Tests for security headers middleware."""
import pytest


@pytest.mark.asyncio
async def test_security_headers_present(client):
    resp = await client.get("/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert "strict-origin" in resp.headers["referrer-policy"]
    assert "camera=()" in resp.headers["permissions-policy"]
    assert "max-age=31536000" in resp.headers["strict-transport-security"]


@pytest.mark.asyncio
async def test_admin_endpoints_no_cache(client, admin):
    resp = await client.get("/api/v1/admin/reports", headers=admin["headers"])
    assert "no-store" in resp.headers["cache-control"]
    assert resp.headers["pragma"] == "no-cache"


@pytest.mark.asyncio
async def test_report_endpoints_no_cache(client, customer):
    resp = await client.get("/api/v1/reports/my", headers=customer["headers"])
    assert "no-store" in resp.headers["cache-control"]


@pytest.mark.asyncio
async def test_public_endpoints_no_strict_cache(client):
    resp = await client.get("/api/v1/reviews?limit=1")
    assert "no-store" not in resp.headers.get("cache-control", "")
