"""
Optional Redis read-through cache (graceful fallback if unavailable).

A ``ResponseCache`` is built once by ``create_app`` and kept on ``app.state``.
With no Redis URL configured, or when Redis stops answering, every call is a
no-op / miss and requests go straight to the database.
"""

import json
import logging
from typing import Optional

import redis
from fastapi import Request

logger = logging.getLogger(__name__)

HIGHSCORES_KEY = "highscores:top50"
CATALOG_KEY = "species:catalog"


class ResponseCache:
    """JSON values in Redis with per-key TTLs."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "ResponseCache":
        """Connect to ``url``; return a disabled cache when it is empty or unreachable."""
        if not url:
            logger.info("Redis not configured — running without cache")
            return cls(None)
        client = redis.Redis.from_url(url, decode_responses=True)
        try:
            client.ping()
        except redis.RedisError as exc:
            logger.warning("⚠ Redis unavailable (%s) — running without cache", exc)
            return cls(None)
        logger.info("✓ Redis connected — caching is enabled")
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def get(self, key: str):
        """Read a JSON value; returns None on miss or if Redis is down."""
        if self._client is None:
            return None
        try:
            data = self._client.get(key)
        except redis.RedisError as exc:
            logger.warning("cache get %s failed: %s", key, exc)
            return None
        return json.loads(data) if data else None

    def set(self, key: str, value, ttl: int) -> None:
        """Write a JSON value with a TTL (seconds)."""
        if self._client is None or ttl <= 0:
            return
        try:
            self._client.setex(key, ttl, json.dumps(value, default=str))
        except redis.RedisError as exc:
            logger.warning("cache set %s failed: %s", key, exc)

    def invalidate(self, *keys: str) -> None:
        """Delete one or more cache keys."""
        if self._client is None or not keys:
            return
        try:
            self._client.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("cache invalidate %s failed: %s", keys, exc)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache
