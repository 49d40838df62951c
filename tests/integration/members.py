"""Helpers for creating members through the public auth API."""

import uuid

from httpx import AsyncClient


def unique_user() -> dict[str, str]:
    """Generate unique credentials to avoid test pollution."""
    uid = uuid.uuid4().hex[:8]
    return {
        "username": f"member_{uid}",
        "email": f"member_{uid}@example.com",
        "password": "TestPass1",
    }


async def register_and_login(client: AsyncClient) -> tuple[str, dict[str, str]]:
    """Register a fresh member; return (member_id, auth headers)."""
    user = unique_user()
    reg = await client.post("/api/v1/auth/register", json=user)
    member_id = reg.json()["data"]["user_id"]
    login = await client.post(
        "/api/v1/auth/login",
        json={"username": user["username"], "password": user["password"]},
    )
    token = login.json()["data"]["access_token"]
    return member_id, {"Authorization": f"Bearer {token}"}
