"""Per-fingerprint mutual exclusion for the submit path.

Store and Ledger are each safe on their own (compare-and-insert, global
append lock).  This lock wraps the pair so that concurrent uploads of one
document do their Store+Ledger round-trips one at a time, while uploads of
different documents never wait on each other.

  InMemoryFingerprintLock: one asyncio.Lock per key, dropped when idle
  RedisFingerprintLock   : one Redis lock per key, shared by all instances
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from redis.exceptions import LockError, RedisError

from certify.core.errors import StorageError

logger = logging.getLogger(__name__)


class FingerprintLock(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


class InMemoryFingerprintLock:
    """Process-local locks, ref-counted so idle keys don't accumulate."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


class RedisFingerprintLock:
    """Redis-backed lock shared across API instances.

    The lock has a TTL (`timeout`) so a crashed holder cannot wedge a
    fingerprint forever; `blocking_timeout` bounds how long a caller waits
    before giving up with a retryable StorageError.
    """

    _PREFIX = "lock:fingerprint:"

    def __init__(self, redis_client, *, timeout: float = 10.0) -> None:
        self._redis = redis_client
        self._timeout = timeout

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._PREFIX}{key}",
            timeout=self._timeout,
            blocking_timeout=self._timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            raise StorageError("fingerprint lock backend unavailable") from exc
        if not acquired:
            raise StorageError("timed out waiting for fingerprint lock")

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # TTL expired while we held it; the write itself is still
                # protected by the Store and Ledger constraints.
                logger.warning("Fingerprint lock expired before release")
            except RedisError:
                logger.exception("Fingerprint lock release failed")
