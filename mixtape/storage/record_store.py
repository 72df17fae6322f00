"""
Record store for persisted records and cached API responses.
Provides a Redis backend with TTL support and fallback to an in-memory store.
"""

import json
import logging
from typing import Any, Optional, Dict, List
from datetime import datetime, timedelta
import redis.asyncio as redis

logger = logging.getLogger(__name__)

class RecordStore:
    """Key-value and append-only list store with Redis backend and in-memory fallback."""

    def __init__(self, redis_url: Optional[str] = None, max_memory_items: int = 10000):
        """
        Initialize record store.

        Args:
            redis_url: Redis connection URL (optional)
            max_memory_items: Cap on expiring in-memory entries
        """
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None
        self.memory_records: Dict[str, tuple] = {}  # key -> (value, expires_at or None)
        self.memory_lists: Dict[str, List[Any]] = {}
        self.max_memory_items = max_memory_items

    async def connect(self):
        """Connect to Redis if URL is provided."""
        if self.redis_url:
            try:
                self.redis = redis.from_url(self.redis_url)
                await self.redis.ping()
                logger.info("Connected to Redis record store")
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}, using memory store")
                self.redis = None

    async def close(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()

    async def get(self, key: str) -> Optional[Any]:
        """Get value from the store."""
        if self.redis:
            try:
                value = await self.redis.get(key)
                if value:
                    return json.loads(value)
                return None
            except Exception as e:
                logger.warning(f"Redis get error: {e}")

        if key in self.memory_records:
            value, expires_at = self.memory_records[key]
            if expires_at is None or datetime.now() < expires_at:
                return value
            del self.memory_records[key]

        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        """Set value; records without ``ttl`` never expire."""
        serialized_value = json.dumps(value, default=str)

        if self.redis:
            try:
                if ttl:
                    await self.redis.setex(key, ttl, serialized_value)
                else:
                    await self.redis.set(key, serialized_value)
                return
            except Exception as e:
                logger.warning(f"Redis set error: {e}")

        expires_at = datetime.now() + timedelta(seconds=ttl) if ttl else None
        # Round-trip through JSON so memory and Redis hand back the same shapes
        self.memory_records[key] = (json.loads(serialized_value), expires_at)

        if len(self.memory_records) > self.max_memory_items:
            self._cleanup_memory_records()

    async def delete(self, key: str):
        """Delete value from the store."""
        if self.redis:
            try:
                await self.redis.delete(key)
            except Exception as e:
                logger.warning(f"Redis delete error: {e}")

        self.memory_records.pop(key, None)

    async def append(self, key: str, value: Any):
        """Append a value to the list stored at ``key``."""
        serialized_value = json.dumps(value, default=str)

        if self.redis:
            try:
                await self.redis.rpush(key, serialized_value)
                return
            except Exception as e:
                logger.warning(f"Redis append error: {e}")

        self.memory_lists.setdefault(key, []).append(json.loads(serialized_value))

    async def get_list(self, key: str) -> List[Any]:
        """Return every value of the list stored at ``key``, oldest first."""
        if self.redis:
            try:
                values = await self.redis.lrange(key, 0, -1)
                return [json.loads(value) for value in values]
            except Exception as e:
                logger.warning(f"Redis list error: {e}")

        return list(self.memory_lists.get(key, []))

    def _cleanup_memory_records(self):
        """Remove expired entries, then the oldest expiring entries."""
        now = datetime.now()
        expired_keys = [
            key for key, (_, expires_at) in self.memory_records.items()
            if expires_at is not None and now >= expires_at
        ]

        for key in expired_keys:
            del self.memory_records[key]

        # Only cached responses are evicted; persistent records stay
        if len(self.memory_records) > self.max_memory_items:
            expiring = [key for key, (_, expires_at) in self.memory_records.items() if expires_at is not None]
            items_to_remove = len(self.memory_records) - self.max_memory_items + 100
            for key in expiring[:items_to_remove]:
                del self.memory_records[key]

    def get_cache_key(self, prefix: str, *args) -> str:
        """Generate cache key from prefix and arguments."""
        key_parts = [prefix] + [str(arg) for arg in args]
        return ":".join(key_parts)
