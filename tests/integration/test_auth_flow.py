"""Integration tests for auth flow (requires running PG + Redis).

Pre-condition: alembic upgrade head
"""

import uuid

import pytest
from httpx import AsyncClient

from members import register_and_login, unique_user

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestRegister:
    async def test_register_success(self, client: AsyncClient) -> None:
        user = unique_user()
        resp = await client.post("/api/v1/auth/register", json=user)
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["username"] == user["username"]
        assert "user_id" in body["data"]
        assert "request_id" in body

    async def test_register_duplicate_username(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/register",
            json={**user, "email": f"other_{uuid.uuid4().hex[:6]}@example.com"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1001

    async def test_register_duplicate_email(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/register",
            json={**user, "username": f"other_{uuid.uuid4().hex[:6]}"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1002

    async def test_register_weak_password(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/auth/register", json={**unique_user(), "password": "weak"})
        assert resp.status_code == 422


class TestLogin:
    async def test_wrong_password(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": "WrongPass1"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003

    async def test_refresh(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        login = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": user["password"]},
        )
        resp = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login.json()["data"]["refresh_token"]},
        )
        assert resp.status_code == 200
        assert "access_token" in resp.json()["data"]


class TestProfile:
    async def test_new_member_starts_empty(self, client: AsyncClient) -> None:
        _, headers = await register_and_login(client)
        resp = await client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["score"] == 0
        assert data["membership_type"] == "FREE"
        assert data["payment_key_set"] is False

    async def test_update_payment_key(self, client: AsyncClient) -> None:
        _, headers = await register_and_login(client)
        resp = await client.put(
            "/api/v1/auth/me", json={"payment_key": "member@pix"}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["payment_key_set"] is True

    async def test_me_requires_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401
