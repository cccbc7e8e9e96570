"""
Key-value persistence for the scheduling history pattern table.

RedisPatternCache stores one JSON document per user. Any client exposing
async get / set_with_ttl / delete works, which is how tests swap in a fake.
"""

import json
from typing import Any

from checkin.config import settings
from checkin.infrastructure.observability.logging import get_logger
from checkin.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)


class RedisPatternCache:
    def __init__(
        self,
        client: FastRedisClient | Any = None,
        key_prefix: str | None = None,
        ttl_s: int | None = None,
    ):
        self.client = client or fast_redis
        self.key_prefix = key_prefix or settings.PATTERN_CACHE_KEY_PREFIX
        self.ttl_s = ttl_s if ttl_s is not None else settings.PATTERN_CACHE_TTL_SECONDS

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}:{user_id}"

    async def get_scheduling_history(self, user_id: str) -> dict[str, Any] | None:
        raw = await self.client.get(self._key(user_id))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            # A corrupt document is treated as missing so history restarts cleanly
            logger.warning("Discarding unreadable scheduling history", user_id=user_id, error=str(e))
            return None

    async def save_scheduling_history(self, user_id: str, pattern_data: dict[str, Any]) -> None:
        payload = json.dumps(pattern_data)
        await self.client.set_with_ttl(self._key(user_id), payload, self.ttl_s)
        logger.debug("Scheduling history saved", user_id=user_id, size=len(payload))

    async def clear_scheduling_history(self, user_id: str) -> bool:
        return await self.client.delete(self._key(user_id))


class InMemoryPatternCache:
    """Process-local cache, used for single-session tools and tests."""

    def __init__(self):
        self.store: dict[str, dict[str, Any]] = {}

    async def get_scheduling_history(self, user_id: str) -> dict[str, Any] | None:
        data = self.store.get(user_id)
        return json.loads(json.dumps(data)) if data is not None else None

    async def save_scheduling_history(self, user_id: str, pattern_data: dict[str, Any]) -> None:
        self.store[user_id] = json.loads(json.dumps(pattern_data))
