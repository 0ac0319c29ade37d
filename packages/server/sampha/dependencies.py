"""Shared runtime dependencies for the sampha API."""
from typing import Optional

import redis.asyncio as redis
from fastapi import HTTPException

# Global Redis client (initialized in main.py lifespan)
redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """
    FastAPI dependency that returns the Redis client.

    Raises HTTPException 503 if Redis is not connected.
    """
    if redis_client is None:
        raise HTTPException(status_code=503, detail="Redis not connected")
    return redis_client
