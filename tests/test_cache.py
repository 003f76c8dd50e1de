# ============================================================================
# Redis Cache Tests
# ============================================================================
from unittest.mock import AsyncMock, MagicMock

from app.core.redis import RedisCache


class TestRedisCache:

    async def test_claim_is_set_if_absent(self):
        client = MagicMock()
        client.set = AsyncMock(side_effect=[True, None])
        cache = RedisCache(client)

        assert await cache.claim("practice_session:s1:answered:1", ttl=60) is True
        assert await cache.claim("practice_session:s1:answered:1", ttl=60) is False
        client.set.assert_awaited_with("practice_session:s1:answered:1", "1", nx=True, ex=60)

    async def test_json_helpers(self):
        client = MagicMock()
        client.get = AsyncMock(return_value='{"phase": "feedback"}')
        client.setex = AsyncMock()
        cache = RedisCache(client)

        assert await cache.get_json("k") == {"phase": "feedback"}
        await cache.set_json("k", {"a": 1}, ttl=5)
        client.setex.assert_awaited_once_with("k", 5, '{"a": 1}')
