"""Tests for bearer-token verification and role checks."""
from __future__ import annotations

import time

import pytest

from marketplace.auth import _sign, _verify, create_access_token, is_admin
from marketplace.db.user_tables import UserRow
from tests.conftest import make_user


def test_access_token_round_trip():
    payload = _verify(create_access_token("user-1"))
    assert payload["sub"] == "user-1"
    assert payload["type"] == "access"


def test_tampered_token_rejected():
    token = create_access_token("user-1")
    header, body, sig = token.split(".")
    forged = _sign({"sub": "someone-else", "exp": time.time() + 60, "type": "access"}).split(".")[1]
    assert _verify(f"{header}.{forged}.{sig}") is None
    assert _verify("not.a.token") is None
    assert _verify("garbage") is None


def test_expired_token_rejected():
    token = _sign({"sub": "user-1", "exp": time.time() - 1, "type": "access"})
    assert _verify(token) is None


def test_is_admin():
    assert is_admin(UserRow(role="admin", is_admin=False, is_super_admin=False))
    assert is_admin(UserRow(role="customer", is_admin=True, is_super_admin=False))
    assert is_admin(UserRow(role="customer", is_admin=False, is_super_admin=True))
    assert not is_admin(UserRow(role="service_provider", is_admin=False, is_super_admin=False))
    assert not is_admin(None)


@pytest.mark.asyncio
async def test_non_access_token_cannot_authenticate(client):
    user = await make_user()
    refresh = _sign({"sub": user["id"], "exp": time.time() + 60, "type": "refresh"})
    resp = await client.get("/api/v1/reviews/me", headers={"Authorization": f"Bearer {refresh}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_token_for_unknown_user(client):
    token = create_access_token("00000000-0000-4000-8000-000000000000")
    resp = await client.get("/api/v1/reviews/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_flag_grants_admin_routes(client):
    moderator = await make_user("customer", is_admin=True)
    resp = await client.get("/api/v1/admin/reports", headers=moderator["headers"])
    assert resp.status_code == 200
