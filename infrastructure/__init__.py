"""Infrastructure helpers (Redis, etc.)

Expose a small public surface for the Redis helpers used by workers.
"""
from .redis import (
    RedisClient,
    create_redis_client,
    publish_once,
)

__all__ = [
    "RedisClient",
    "create_redis_client",
    "publish_once",
]
