"""Tests for request ID tracing middleware."""
import pytest


@pytest.mark.asyncio
async def test_response_includes_request_id(client):
    resp = await client.get("/health")
    assert len(resp.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_client_request_id_honored(client):
    resp = await client.get("/health", headers={"X-Request-ID": "trace-abc-123"})
    assert resp.headers["x-request-id"] == "trace-abc-123"


@pytest.mark.asyncio
async def test_long_request_id_truncated(client):
    resp = await client.get("/health", headers={"X-Request-ID": "x" * 500})
    assert resp.headers["x-request-id"] == "x" * 128


@pytest.mark.asyncio
async def test_unique_ids_per_request(client):
    r1 = await client.get("/health")
    r2 = await client.get("/health")
    assert r1.headers["x-request-id"] != r2.headers["x-request-id"]


@pytest.mark.asyncio
async def test_error_responses_carry_request_id(client):
    resp = await client.get("/api/v1/reviews/me")
    assert resp.status_code == 401
    assert "x-request-id" in resp.headers
