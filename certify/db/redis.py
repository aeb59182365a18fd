"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured, create_app() builds a
pooled async client; otherwise it is None and the per-fingerprint lock
falls back to process-local asyncio locks.

Redis holds no certificate state.  It only coordinates: several API
instances submitting the same document at once take the same Redis lock,
so the hashing and database round-trips for one fingerprint happen once.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


def create_redis(redis_url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    return aioredis.from_url(
        redis_url,
        decode_responses=True,
        max_connections=20,
    )


@asynccontextmanager
async def lifespan_redis(client: aioredis.Redis | None) -> AsyncIterator[None]:  # type: ignore[type-arg]
    """Verify connectivity on startup, release the pool on shutdown."""
    if client is None:
        logger.info("No REDIS_URL configured; fingerprint locks are process-local")
        yield
        return

    try:
        await client.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except aioredis.RedisError:
        # Start anyway: lock acquisition fails with StorageError (503) until
        # Redis comes back, and /health reports it as degraded.
        logger.exception("Redis connection failed on startup")

    yield

    await client.aclose()
    logger.info("Redis connection pool closed")
