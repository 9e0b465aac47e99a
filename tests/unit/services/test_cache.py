"""Unit tests for the Redis cache service."""

import pytest

from dropship_service.infrastructure.redis import CacheService, params_key
from tests.conftest import FakeRedis


class TestCacheServiceGracefulDegradation:
    """CacheService should no-op safely when Redis is unavailable."""

    @pytest.fixture
    def cache(self) -> CacheService:
        return CacheService(None, namespace="test")

    @pytest.mark.asyncio
    async def test_get_returns_none(self, cache: CacheService) -> None:
        assert await cache.get("cj:tokens") is None

    @pytest.mark.asyncio
    async def test_loader_always_called(self, cache: CacheService) -> None:
        calls = []

        async def load() -> list[str]:
            calls.append(1)
            return ["tree"]

        assert await cache.get_or_load("cj:categories:tree", load, ttl_seconds=60) == ["tree"]
        assert await cache.get_or_load("cj:categories:tree", load, ttl_seconds=60) == ["tree"]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_is_noop(self, cache: CacheService) -> None:
        assert await cache.invalidate_prefix("cj:search:") == 0

    @pytest.mark.asyncio
    async def test_health_check_returns_false(self, cache: CacheService) -> None:
        assert await cache.health_check() is False


class TestCacheService:
    @pytest.fixture
    def redis(self) -> FakeRedis:
        return FakeRedis()

    @pytest.fixture
    def cache(self, redis: FakeRedis) -> CacheService:
        return CacheService(redis, namespace="test")

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, cache: CacheService, redis: FakeRedis) -> None:
        await cache.set("cj:tokens", {"access_token": "a"})

        assert list(redis.store) == ["test:cj:tokens"]
        assert await cache.get("cj:tokens") == {"access_token": "a"}

        await cache.delete("cj:tokens")
        assert redis.store == {}

    @pytest.mark.asyncio
    async def test_get_or_load_reads_through(self, cache: CacheService) -> None:
        calls = []

        async def load() -> dict:
            calls.append(1)
            return {"total": len(calls)}

        assert await cache.get_or_load("cj:search:x", load, ttl_seconds=60) == {"total": 1}
        assert await cache.get_or_load("cj:search:x", load, ttl_seconds=60) == {"total": 1}
        assert await cache.get_or_load("cj:search:x", load, ttl_seconds=60, refresh=True) == {
            "total": 2
        }
        assert await cache.get("cj:search:x") == {"total": 2}

    @pytest.mark.asyncio
    async def test_invalidate_prefix(self, cache: CacheService, redis: FakeRedis) -> None:
        await cache.set("cj:search:a", [1])
        await cache.set("cj:search:b", [2])
        await cache.set("cj:tokens", {"access_token": "a"})

        assert await cache.invalidate_prefix("cj:search:") == 2
        assert list(redis.store) == ["test:cj:tokens"]


class TestParamsKey:
    def test_ignores_order_and_none(self) -> None:
        first = params_key("cj:search:", {"keyword": "lamp", "page": 1, "category_id": None})
        second = params_key("cj:search:", {"page": 1, "keyword": "lamp"})

        assert first == second
        assert first.startswith("cj:search:")

    def test_differs_by_value(self) -> None:
        assert params_key("p:", {"page": 1}) != params_key("p:", {"page": 2})
