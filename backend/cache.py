from typing import Any, Optional
import json
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


def assessments_cache_key(subject_id: str) -> str:
    return f"assessments:{subject_id}"


class RedisCache:
    """JSON values in Redis with per-key expiry.

    Backend errors are logged and reported as a miss (``get``) or a no-op
    (``set``/``delete``) so that a cache outage never fails a request.
    """

    def __init__(self, url: str, client: Optional[redis.Redis] = None):
        self.url = url
        self.redis: Optional[redis.Redis] = client

    async def connect(self) -> None:
        if self.redis is None:
            self.redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)

    async def disconnect(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    async def get(self, key: str) -> Any:
        try:
            value = await self.redis.get(key)
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        try:
            return bool(await self.redis.set(key, json.dumps(value), ex=ttl_seconds))
        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")
            return False

    async def delete(self, key: str) -> int:
        try:
            return await self.redis.delete(key)
        except Exception as e:
            logger.error(f"Cache delete error for {key}: {e}")
            return 0
