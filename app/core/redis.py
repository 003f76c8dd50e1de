# ============================================================================
# Redis Connection
# ============================================================================
import json

import redis.asyncio as redis
from app.config import get_settings

settings = get_settings()

redis_client = redis.from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True
)

class RedisCache:
    """Redis caching and pub/sub utility"""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int = 3600) -> None:
        await self.client.setex(key, ttl, value)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def claim(self, key: str, ttl: int = 3600) -> bool:
        """SET NX: true only for the first caller to take ``key``"""
        return bool(await self.client.set(key, "1", nx=True, ex=ttl))

    async def get_json(self, key: str) -> dict | None:
        data = await self.get(key)
        return json.loads(data) if data else None

    async def set_json(self, key: str, value: dict, ttl: int = 3600) -> None:
        await self.set(key, json.dumps(value), ttl)

    # Pub/sub
    async def publish(self, channel: str, message: str) -> int:
        return await self.client.publish(channel, message)

    def pubsub(self):
        return self.client.pubsub()

cache = RedisCache(redis_client)
