"""Single-flight guard for import, registration and clone rounds.

A round holds the lock for its key for its whole duration.  Acquisition
never waits: if another round holds the key, RoundInProgressError is raised
and the API answers 409.  That closes the double-submit window where two
identical requests would both create a record or both call the registry.

Keys:
  credential:<uuid>                       registration / clone of one record
  import:<ledger>|<schema_id>|<cred_def_id>  one import

In-process asyncio locks are enough for a single API instance.  With
REDIS_URL set the lock is a Redis key written with SET NX PX, so all
instances see it; the PX expiry frees a key left behind by a crashed
worker.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, runtime_checkable

from app.core.metrics import ROUND_LOCK_CONFLICTS
from app.db.redis import redis_pool
from app.services.errors import RoundInProgressError

logger = logging.getLogger(__name__)

# Longer than the slowest round: explorer fetch + two registry calls.
DEFAULT_TTL_MS = 120_000


@runtime_checkable
class RoundLock(Protocol):
    def hold(self, scope: str, key: str) -> AbstractAsyncContextManager[None]:
        """Hold ``scope:key`` for the duration of the ``async with`` block."""
        ...


def _conflict(scope: str, full_key: str) -> RoundInProgressError:
    ROUND_LOCK_CONFLICTS.labels(scope=scope).inc()
    logger.warning("Round already in progress key=%s", full_key)
    return RoundInProgressError(full_key)


class InMemoryRoundLock:
    """Per-process lock registry for tests and single-instance deployments."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, scope: str, key: str) -> AsyncIterator[None]:
        full_key = f"{scope}:{key}"
        lock = self._locks.setdefault(full_key, asyncio.Lock())
        if lock.locked():
            raise _conflict(scope, full_key)
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
            self._locks.pop(full_key, None)


class RedisRoundLock:
    """Redis-backed lock shared by every API instance."""

    _PREFIX = "round:"

    # Delete only if we still own the key; a lock that expired and was
    # taken by another round must not be released by us.
    _RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    end
    return 0
    """

    def __init__(self, redis_client, *, ttl_ms: int = DEFAULT_TTL_MS) -> None:
        self._redis = redis_client
        self._ttl_ms = ttl_ms

    @asynccontextmanager
    async def hold(self, scope: str, key: str) -> AsyncIterator[None]:
        full_key = f"{scope}:{key}"
        redis_key = f"{self._PREFIX}{full_key}"
        owner = uuid.uuid4().hex
        acquired = await self._redis.set(redis_key, owner, nx=True, px=self._ttl_ms)
        if not acquired:
            raise _conflict(scope, full_key)
        try:
            yield
        finally:
            await self._redis.eval(self._RELEASE_SCRIPT, 1, redis_key, owner)


# ---------------------------------------------------------------------------
# Module-level singleton, conditional on Redis availability
# ---------------------------------------------------------------------------

if redis_pool is not None:
    round_lock: RoundLock = RedisRoundLock(redis_pool)
else:
    round_lock = InMemoryRoundLock()
