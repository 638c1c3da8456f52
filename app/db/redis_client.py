# app/db/redis_client.py
import os
import redis.asyncio as redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
# The overview cache is best-effort: an unreachable server must fail fast
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5"))

# One client for the whole process
redis_client = redis.from_url(
    REDIS_URL,
    decode_responses=True,
    socket_timeout=REDIS_SOCKET_TIMEOUT,
    socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
)


async def get_redis():
    """
    Dependency to provide the Redis client in FastAPI endpoints
    Usage: `redis: Redis = Depends(get_redis)`
    """
    yield redis_client


async def close_redis() -> None:
    """Called once from the app lifespan on shutdown."""
    await redis_client.aclose()
