"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from members import register_and_login
from sqlalchemy import text

from src.main import app
from src.mc_common.database import async_session_factory


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client that keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def admin_headers(client: AsyncClient) -> dict[str, str]:
    """Auth headers of a member promoted to admin directly in the DB."""
    member_id, headers = await register_and_login(client)
    async with async_session_factory() as session:
        await session.execute(
            text("UPDATE users SET is_admin = TRUE WHERE id = :member_id"),
            {"member_id": member_id},
        )
        await session.commit()
    return headers
