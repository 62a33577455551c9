# -*- coding: utf-8 -*-
"""Location: ./floodgate/stores/base.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Counter store contract.

A store is the only place counter records and global aggregates live. The
admission engine talks to it exclusively through the coroutines below; a
backend that talks to the network raises ``StoreError`` on I/O failure and
lets the engine apply its failure policy.

Contract:

* ``get`` never returns an expired record.
* ``set`` replaces the record wholesale, expiry included.
* ``count_elements_global`` of an elapsed aggregate is 0.
* counters and aggregates live in separate keyspaces, so a counter key and
  an aggregate key may be equal without touching each other.
* ``lock(key)`` serializes the read-decide-write sequence of one key;
  ``lock_global(global_key)`` serializes aggregate registration and never
  shares a lock with ``lock``.
"""

# Future
from __future__ import annotations

# Standard
from abc import ABC, abstractmethod
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import weakref

# First-Party
from floodgate.models import CounterRecord


class KeyedLock:
    """One ``asyncio.Lock`` per key, released for collection once unused.

    Examples:
        >>> import asyncio
        >>> locks = KeyedLock()
        >>> async def run():
        ...     async with locks("a"):
        ...         return locks.locked("a")
        >>> asyncio.run(run())
        True
        >>> locks.locked("a")
        False
    """

    def __init__(self) -> None:
        """Create an empty lock table."""
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _get(self, key: str) -> asyncio.Lock:
        """Return the lock for ``key``, creating it on first use.

        Args:
            key: The key to lock.

        Returns:
            The key's lock.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def locked(self, key: str) -> bool:
        """Tell whether some evaluation currently holds ``key``.

        Args:
            key: The key to inspect.

        Returns:
            True while the key's lock is held.
        """
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def __call__(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Args:
            key: The key to lock.

        Yields:
            None, once the lock is acquired.
        """
        lock = self._get(key)
        async with lock:
            yield


class CounterStore(ABC):
    """Abstract counter and global-aggregate store."""

    def __init__(self) -> None:
        """Set up in-process key and aggregate locks."""
        self._key_locks = KeyedLock()
        self._global_locks = KeyedLock()

    @abstractmethod
    async def get(self, key: str) -> Optional[CounterRecord]:
        """Read a live counter record.

        Args:
            key: Store key.

        Returns:
            The record, or None when absent or expired.
        """

    @abstractmethod
    async def set(self, key: str, count: int, window: int) -> None:
        """Replace the record for ``key``.

        Args:
            key: Store key.
            count: New attempt count.
            window: Milliseconds from now until the record expires.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the record for ``key`` if present.

        Args:
            key: Store key.
        """

    @abstractmethod
    async def add_to_global(self, global_key: str, member: str, duration: int, reset_time_on_retry: bool = False) -> int:
        """Register a blocked local key against a global aggregate.

        Expiry rules:

        * a new (or elapsed) aggregate expires ``duration`` ms from now;
        * a new member pushes the expiry out to ``now + duration`` if that is later;
        * a member already present restarts the expiry at ``now + duration``
          only when ``reset_time_on_retry`` is set, otherwise nothing changes.

        Args:
            global_key: Aggregate key.
            member: Local store key being registered.
            duration: Aggregate window in ms.
            reset_time_on_retry: Restart the expiry on re-registration.

        Returns:
            The member count after registration.
        """

    @abstractmethod
    async def is_global_member(self, global_key: str, member: str) -> bool:
        """Tell whether ``member`` is registered against a live aggregate.

        Args:
            global_key: Aggregate key.
            member: Local store key.

        Returns:
            False when the aggregate is absent, elapsed or lacks the member.
        """

    @abstractmethod
    async def count_elements_global(self, global_key: str) -> int:
        """Count members of a live aggregate.

        Args:
            global_key: Aggregate key.

        Returns:
            Number of members, 0 when absent or expired.
        """

    def lock(self, key: str):
        """Serialize evaluations on ``key`` within this process.

        Backends shared between processes override this with a distributed lock.

        Args:
            key: Store key.

        Returns:
            An async context manager.
        """
        return self._key_locks(key)

    def lock_global(self, global_key: str):
        """Serialize registrations against one aggregate within this process.

        Args:
            global_key: Aggregate key.

        Returns:
            An async context manager.
        """
        return self._global_locks(global_key)

    async def start(self) -> None:
        """Start background work, if the backend has any."""

    async def shutdown(self) -> None:
        """Stop background work and release resources."""
