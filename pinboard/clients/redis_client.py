"""
Redis client wrapper.

Responsibilities:
  • Social membership sets — STRING (JSON) keyed by social:{kind}:{user_id}
                             (read/written by pinboard.social.backends)

The connection is opened once at startup and shared by all requests.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from pinboard.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis
