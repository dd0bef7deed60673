"""Redis cache for ranker state that should outlive the process.

Holds the user-set rank filter and the latest sorted listing, so a
restart keeps the filter and other processes can read the listing.
Every call degrades to a no-op when Redis is down; the in-memory store
stays the source of truth.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.config import get_settings

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None
_client: redis.Redis | None = None

KEY_PREFIX = "ranker:"


def key(*parts: str) -> str:
    """Namespaced key, e.g. key("filter") -> "ranker:filter"."""
    return KEY_PREFIX + ":".join(parts)


KEY_FILTER = key("filter")
KEY_RANKINGS = key("rankings")


async def init_cache() -> None:
    """Connect to Redis. Leaves the cache disabled if it is unreachable."""
    global _pool, _client

    if _client is not None:
        return

    settings = get_settings()
    # Values are orjson bytes, decoded here rather than by redis-py
    _pool = ConnectionPool.from_url(settings.redis_url, max_connections=4, decode_responses=False)
    _client = redis.Redis(connection_pool=_pool)

    try:
        await _client.ping()
        logger.info(f"Redis connected: {settings.redis_url}")
    except (redis.ConnectionError, OSError) as e:
        logger.warning(f"Redis connection failed: {e}. Filter and listing will not persist.")
        await _client.aclose()
        await _pool.disconnect()
        _client = None
        _pool = None


async def close_cache() -> None:
    global _pool, _client

    if _client is not None:
        await _client.aclose()
        _client = None
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
        logger.info("Redis connection closed")


def is_cache_available() -> bool:
    return _client is not None


async def get_json(name: str) -> Any | None:
    """Decoded value of ``name``, or None if missing, unreadable or offline."""
    if _client is None:
        return None

    try:
        data = await _client.get(name)
    except redis.RedisError as e:
        logger.warning(f"Redis GET {name} failed: {e}")
        return None
    if data is None:
        return None

    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        logger.warning(f"Discarding unreadable value at {name}: {e}")
        return None


async def set_json(name: str, value: Any, ttl: int | None = None) -> bool:
    """Store ``value`` as JSON. Window keys (ints) are written as strings."""
    if _client is None:
        return False

    try:
        data = orjson.dumps(value, option=orjson.OPT_NON_STR_KEYS)
    except TypeError as e:
        logger.warning(f"Cannot encode value for {name}: {e}")
        return False

    try:
        await _client.set(name, data, ex=ttl)
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis SET {name} failed: {e}")
        return False


async def ping() -> bool:
    """Whether Redis answers; False when the cache is disabled."""
    if _client is None:
        return False

    try:
        return await _client.ping()
    except redis.RedisError:
        return False
