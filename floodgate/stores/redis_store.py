# -*- coding: utf-8 -*-
"""Location: ./floodgate/stores/redis_store.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Redis counter store.

Shares counters and global aggregates between processes and replicas.

Layout (all keys under ``namespace``):

* counter: hash ``counter:<key>`` = ``{count, expires_at}`` with
  ``PEXPIREAT expires_at``; reads also compare ``expires_at`` with the local
  clock, so a record is never returned past its window even if Redis has
  not evicted it yet.
* aggregate: set ``global:<key>`` of member keys; the TTL lives on the set
  itself, so the member count and the window can never disagree. Members and
  expiry are written in one optimistic (``WATCH``) transaction.
* locks: ``counter:<key>:lock`` held for one evaluation and
  ``global:<key>:lock`` held for one registration.

Every ``redis.RedisError`` is re-raised as ``StoreError``.
"""

# Future
from __future__ import annotations

# Standard
from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator, Callable, Optional

# Third-Party
from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError

# First-Party
from floodgate.errors import StoreError
from floodgate.models import CounterRecord, now_ms
from floodgate.stores.base import CounterStore

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
COUNTER_SPACE = "counter:"
GLOBAL_SPACE = "global:"


class RedisStore(CounterStore):
    """Counter store backed by ``redis.asyncio``."""

    def __init__(
        self,
        client: Any = None,
        url: Optional[str] = None,
        namespace: str = "floodgate:",
        lock_timeout: float = 5.0,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the store.

        Args:
            client: An existing ``redis.asyncio.Redis`` client; created from ``url`` when None.
            url: Redis URL used when no client is given.
            namespace: Prefix applied to every Redis key.
            lock_timeout: Seconds a key lock is held at most and waited for at most.
            clock: Returns the current time in epoch ms.
        """
        super().__init__()
        self._owns_client = client is None
        self._redis = client if client is not None else aioredis.from_url(url or DEFAULT_REDIS_URL, decode_responses=True)
        self.namespace = namespace
        self.lock_timeout = lock_timeout
        self._clock = clock or now_ms
        logger.info(f"Redis store initialized (namespace={namespace!r}, lock_timeout={lock_timeout}s)")

    def _key(self, key: str) -> str:
        """Namespace a counter key.

        Args:
            key: Store key.

        Returns:
            The Redis key of the counter hash.
        """
        return f"{self.namespace}{COUNTER_SPACE}{key}"

    def _global_key(self, global_key: str) -> str:
        """Namespace an aggregate key.

        Args:
            global_key: Aggregate key.

        Returns:
            The Redis key of the aggregate set.
        """
        return f"{self.namespace}{GLOBAL_SPACE}{global_key}"

    async def get(self, key: str) -> Optional[CounterRecord]:
        """Read a live counter record.

        Args:
            key: Store key.

        Returns:
            The record, or None.

        Raises:
            StoreError: If Redis fails.
        """
        try:
            data = await self._redis.hgetall(self._key(key))
        except RedisError as e:
            raise StoreError(f"Redis get failed: {e}", key=key) from e
        if not data:
            return None
        record = CounterRecord(count=int(data["count"]), expires_at=int(data["expires_at"]))
        if record.is_expired(self._clock()):
            return None
        return record

    async def set(self, key: str, count: int, window: int) -> None:
        """Replace the record for ``key`` in one transaction.

        Args:
            key: Store key.
            count: New attempt count.
            window: Milliseconds until expiry.

        Raises:
            StoreError: If Redis fails.
        """
        redis_key = self._key(key)
        expires_at = self._clock() + window
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(redis_key)
                pipe.hset(redis_key, mapping={"count": count, "expires_at": expires_at})
                pipe.pexpireat(redis_key, expires_at)
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Redis set failed: {e}", key=key) from e

    async def delete(self, key: str) -> None:
        """Remove the record for ``key``.

        Args:
            key: Store key.

        Raises:
            StoreError: If Redis fails.
        """
        try:
            await self._redis.delete(self._key(key))
        except RedisError as e:
            raise StoreError(f"Redis delete failed: {e}", key=key) from e

    async def add_to_global(self, global_key: str, member: str, duration: int, reset_time_on_retry: bool = False) -> int:
        """Register a blocked local key against an aggregate.

        Args:
            global_key: Aggregate key.
            member: Local store key.
            duration: Aggregate window in ms.
            reset_time_on_retry: Restart the expiry when ``member`` is already present.

        Returns:
            Member count after registration.

        Raises:
            StoreError: If Redis fails.
        """
        redis_key = self._global_key(global_key)
        now = self._clock()
        target = now + duration
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(redis_key)
                        remaining = await pipe.pttl(redis_key)
                        present = await pipe.sismember(redis_key, member)
                        pipe.multi()
                        pipe.sadd(redis_key, member)
                        # -2: aggregate did not exist, -1: no TTL set
                        if remaining < 0 or (not present and target > now + remaining) or (present and reset_time_on_retry):
                            pipe.pexpireat(redis_key, target)
                        pipe.scard(redis_key)
                        results = await pipe.execute()
                        break
                    except WatchError:
                        logger.debug(f"Aggregate {global_key} changed during registration, retrying")
                        continue
        except RedisError as e:
            raise StoreError(f"Redis add_to_global failed: {e}", key=global_key) from e
        return int(results[-1])

    async def is_global_member(self, global_key: str, member: str) -> bool:
        """Tell whether ``member`` is registered against a live aggregate.

        Args:
            global_key: Aggregate key.
            member: Local store key.

        Returns:
            True when the aggregate set contains ``member``.

        Raises:
            StoreError: If Redis fails.
        """
        try:
            return bool(await self._redis.sismember(self._global_key(global_key), member))
        except RedisError as e:
            raise StoreError(f"Redis is_global_member failed: {e}", key=global_key) from e

    async def count_elements_global(self, global_key: str) -> int:
        """Count members of a live aggregate.

        Args:
            global_key: Aggregate key.

        Returns:
            Member count, 0 when absent or elapsed.

        Raises:
            StoreError: If Redis fails.
        """
        try:
            return int(await self._redis.scard(self._global_key(global_key)))
        except RedisError as e:
            raise StoreError(f"Redis count_elements_global failed: {e}", key=global_key) from e

    def lock(self, key: str):
        """Hold a Redis lock on a counter so replicas serialize on it too.

        Args:
            key: Store key.

        Returns:
            An async context manager.
        """
        return self._distributed_lock(self._key(key), key)

    def lock_global(self, global_key: str):
        """Hold a Redis lock on an aggregate for one registration.

        Args:
            global_key: Aggregate key.

        Returns:
            An async context manager.
        """
        return self._distributed_lock(self._global_key(global_key), global_key)

    @asynccontextmanager
    async def _distributed_lock(self, redis_key: str, key: str) -> AsyncIterator[None]:
        """Acquire and release the Redis lock guarding ``redis_key``.

        Args:
            redis_key: Namespaced Redis key being guarded.
            key: Store or aggregate key, for errors and logs.

        Yields:
            None, once the lock is held.

        Raises:
            StoreError: If the lock cannot be acquired.
        """
        lock = self._redis.lock(f"{redis_key}:lock", timeout=self.lock_timeout, blocking_timeout=self.lock_timeout)
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise StoreError(f"Redis lock failed: {e}", key=key) from e
        if not acquired:
            raise StoreError(f"Timed out after {self.lock_timeout}s waiting for lock", key=key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except RedisError as e:
                logger.warning(f"Redis lock for {key} was lost before release: {e}")

    async def shutdown(self) -> None:
        """Close the Redis client if this store created it."""
        if self._owns_client:
            await self._redis.aclose()
            logger.info("Redis store connection closed")
