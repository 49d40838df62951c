"""Unit tests for the Redis-backed rate limiting middleware."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from redis.exceptions import RedisError
from starlette.requests import Request

from config.settings import settings
from src.mc_gateway.middleware.rate_limit import client_ip, rate_limit_key


def _request(path: str, headers: dict[str, str] | None = None) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("test", 80),
        "path": path,
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": ("9.9.9.9", 4321),
    })


class TestKeys:
    def test_forwarded_for_first_hop(self) -> None:
        req = _request("/api/v1/ledger/balance", {"X-Forwarded-For": "1.2.3.4, 10.0.0.1"})
        assert client_ip(req) == "1.2.3.4"

    def test_direct_client(self) -> None:
        assert client_ip(_request("/")) == "9.9.9.9"

    def test_auth_routes_keyed_by_ip(self) -> None:
        key, limit = rate_limit_key(_request("/api/v1/auth/login", {"Authorization": "Bearer abc"}))
        assert key == "ratelimit:auth:9.9.9.9"
        assert limit == settings.RATE_LIMIT_AUTH_PER_MINUTE

    def test_api_keyed_by_token(self) -> None:
        key_a, _ = rate_limit_key(_request("/api/v1/ledger/balance", {"Authorization": "Bearer a"}))
        key_b, _ = rate_limit_key(_request("/api/v1/ledger/balance", {"Authorization": "Bearer b"}))
        assert key_a.startswith("ratelimit:api:")
        assert key_a != key_b


class TestMiddleware:
    @pytest.fixture(autouse=True)
    def _enabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)

    async def test_over_limit_returns_429(self, client: AsyncClient) -> None:
        redis = AsyncMock()
        redis.incr.return_value = settings.RATE_LIMIT_PER_MINUTE + 1
        with patch("src.mc_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            resp = await client.get("/api/v1/does-not-exist")
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "60"
        assert resp.json()["code"] == 9001

    async def test_first_hit_sets_window(self, client: AsyncClient) -> None:
        redis = AsyncMock()
        redis.incr.return_value = 1
        with patch("src.mc_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)):
            resp = await client.get("/api/v1/does-not-exist")
        assert resp.status_code == 404
        redis.expire.assert_awaited_once()

    async def test_redis_down_fails_open(self, client: AsyncClient) -> None:
        with patch(
            "src.mc_gateway.middleware.rate_limit.get_redis",
            AsyncMock(side_effect=RedisError("connection refused")),
        ):
            resp = await client.get("/api/v1/does-not-exist")
        assert resp.status_code == 404

    async def test_health_is_exempt(self, client: AsyncClient) -> None:
        with patch("src.mc_gateway.middleware.rate_limit.get_redis") as get_redis:
            resp = await client.get("/health")
        assert resp.status_code == 200
        get_redis.assert_not_called()
