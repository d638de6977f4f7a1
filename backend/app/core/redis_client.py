"""
Redis connection for the rate quote cache.

Redis is optional for this service: quotes are computed fresh whenever it
is unreachable. Short socket timeouts keep a dead Redis from stalling
rate requests.
"""

import logging

import redis.asyncio as redis
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    socket_timeout=settings.redis_socket_timeout_seconds,
    socket_connect_timeout=settings.redis_socket_timeout_seconds,
)


async def get_redis():
    """FastAPI dependency returning the shared client."""
    return redis_client


async def ping_redis() -> bool:
    """Reachability probe for /health. Never raises."""
    try:
        return bool(await redis_client.ping())
    except Exception as e:
        logger.warning("Redis ping failed", extra={"error": str(e)})
        return False


async def close_redis() -> None:
    """Release pooled connections on shutdown."""
    try:
        await redis_client.aclose()
    except Exception as e:
        logger.warning("Redis close failed", extra={"error": str(e)})
