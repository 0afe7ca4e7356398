"""
SimpleCache 测试 - 使用模拟的Redis客户端
"""

import json
import pytest
from unittest.mock import AsyncMock

from coupon_engine.core.redis import RedisManager
from coupon_engine.services.common_cache import SimpleCache, coupon_code_key


@pytest.mark.asyncio
class TestSimpleCache:
    """SimpleCache测试类"""

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get = AsyncMock(return_value=None)
        client.setex = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        return client

    @pytest.fixture
    def cache(self, redis_client):
        return SimpleCache(redis_client=redis_client, key_prefix="coupon:")

    async def test_set_and_get(self, cache, redis_client):
        assert await cache.set(coupon_code_key("ABC123"), {"code": "ABC123"}, ttl=60) is True

        redis_client.setex.assert_awaited_once_with("coupon:code:ABC123", 60, json.dumps({"code": "ABC123"}))

        redis_client.get.return_value = '{"code": "ABC123"}'
        assert await cache.get(coupon_code_key("ABC123")) == {"code": "ABC123"}

    async def test_get_miss(self, cache):
        assert await cache.get("code:NONE") is None

    async def test_delete(self, cache, redis_client):
        assert await cache.delete("code:ABC123") is True
        redis_client.delete.assert_awaited_once_with("coupon:code:ABC123")

        redis_client.delete.return_value = 0
        assert await cache.delete("code:ABC123") is False

    async def test_redis_errors_degrade_to_miss(self, cache, redis_client):
        redis_client.get.side_effect = ConnectionError("redis down")
        redis_client.setex.side_effect = ConnectionError("redis down")
        redis_client.delete.side_effect = ConnectionError("redis down")

        assert await cache.get("code:ABC123") is None
        assert await cache.set("code:ABC123", {"code": "ABC123"}) is False
        assert await cache.delete("code:ABC123") is False

    async def test_without_client(self, monkeypatch):
        monkeypatch.setattr("coupon_engine.services.common_cache.get_redis_client", lambda: None)
        cache = SimpleCache(key_prefix="coupon:")

        assert await cache.get("code:ABC123") is None
        assert await cache.set("code:ABC123", {}) is False
        assert await cache.delete("code:ABC123") is False


@pytest.mark.asyncio
class TestRedisManager:
    """RedisManager测试类"""

    @pytest.fixture
    def fake_client(self, monkeypatch):
        client = AsyncMock()
        client.ping = AsyncMock(return_value=True)
        monkeypatch.setattr("coupon_engine.core.redis.aioredis.from_url", lambda *args, **kwargs: client)
        return client

    async def test_init_ping_close(self, fake_client):
        manager = RedisManager()

        await manager.init_redis("redis://cache:6379/0")

        assert manager.redis_pool is fake_client
        assert await manager.ping() is True

        await manager.close_redis()

        fake_client.aclose.assert_awaited_once()
        assert manager.redis_pool is None
        assert await manager.ping() is False

    async def test_init_failure_leaves_manager_disconnected(self, fake_client):
        fake_client.ping.side_effect = ConnectionError("connection refused")
        manager = RedisManager()

        with pytest.raises(ConnectionError):
            await manager.init_redis("redis://cache:6379/0")

        assert manager.redis_pool is None
        fake_client.aclose.assert_awaited_once()
