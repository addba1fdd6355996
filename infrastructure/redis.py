import json
from typing import Any, Optional

import redis.asyncio as redis


class RedisClient:
    """Simple async Redis client wrapper with lifecycle management.

    Usage:
        client = RedisClient.from_url("redis://localhost:6379/0")
        await client.init()
        await client.publish_json("announcements", {"kind": "elimination"})
        await client.close()
    """

    def __init__(self, url: str, *, decode_responses: bool = True):
        self.url = url
        self.decode_responses = decode_responses
        self._client: Optional[redis.Redis] = None

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisClient":
        return cls(url, **kwargs)

    async def init(self) -> None:
        """Initialize the underlying redis connection. Must be awaited."""
        if self._client is not None:
            return
        self._client = redis.from_url(self.url, decode_responses=self.decode_responses)
        # verify connectivity
        await self._client.ping()

    async def close(self) -> None:
        """Close the connection cleanly."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None

    def get(self) -> redis.Redis:
        """Return the underlying `redis.Redis` client. Raises if not initialized."""
        if self._client is None:
            raise RuntimeError("Redis client not initialized; call init() first")
        return self._client

    async def publish_json(self, channel: str, payload: dict[str, Any]) -> int:
        """Publish `payload` as JSON on `channel`; returns the number of receivers."""
        return await self.get().publish(channel, json.dumps(payload, default=str))


def create_redis_client(url: str, *, decode_responses: bool = True) -> RedisClient:
    """Create (but do not init) a RedisClient. Use `init()` to open."""
    return RedisClient(url, decode_responses=decode_responses)


async def publish_once(url: str, channel: str, payload: dict[str, Any]) -> int:
    """Open a short-lived client, publish one message and close it.

    Celery tasks run each invocation in a fresh event loop, so they cannot
    share a long-lived async client.
    """
    client = create_redis_client(url)
    await client.init()
    try:
        return await client.publish_json(channel, payload)
    finally:
        await client.close()
