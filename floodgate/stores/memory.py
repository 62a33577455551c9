# -*- coding: utf-8 -*-
"""Location: ./floodgate/stores/memory.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

In-memory counter store.

The reference, single-process backend. Expiry is metadata on the record and
is checked on every read, so correctness never depends on a timer firing.
Records nobody reads again are reclaimed by a sweep. It runs as a background
task once ``start`` is called, and otherwise inline on writes at most once
per ``sweep_interval``, so memory stays bounded even when no lifespan starts
the store. A sweep removes only records that are expired when it looks at
them, so a record overwritten after its predecessor expired is never touched.

Examples:
    >>> import asyncio
    >>> clock = iter([0, 0, 999, 1000]).__next__
    >>> store = MemoryStore(clock=clock)
    >>> async def run():
    ...     await store.set("k", 1, 1000)
    ...     first = await store.get("k")
    ...     second = await store.get("k")
    ...     third = await store.get("k")
    ...     return first, second, third
    >>> asyncio.run(run())
    (CounterRecord(count=1, expires_at=1000), CounterRecord(count=1, expires_at=1000), None)
"""

# Future
from __future__ import annotations

# Standard
import asyncio
import logging
from typing import Callable, Dict, Optional

# First-Party
from floodgate.models import CounterRecord, GlobalAggregateRecord, now_ms
from floodgate.stores.base import CounterStore

logger = logging.getLogger(__name__)


class MemoryStore(CounterStore):
    """Dictionary-backed store with lazy expiry and an optional sweep."""

    def __init__(self, clock: Optional[Callable[[], int]] = None, sweep_interval: float = 60.0):
        """Initialize the store.

        Args:
            clock: Returns the current time in epoch ms; defaults to wall-clock time.
            sweep_interval: Seconds between background sweeps once started.
        """
        super().__init__()
        self._clock = clock or now_ms
        self.sweep_interval = sweep_interval
        self._records: Dict[str, CounterRecord] = {}
        self._aggregates: Dict[str, GlobalAggregateRecord] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self._last_sweep: Optional[int] = None

    def now(self) -> int:
        """Return the store's notion of the current time.

        Returns:
            Epoch milliseconds.
        """
        return self._clock()

    async def get(self, key: str) -> Optional[CounterRecord]:
        """Read a live counter record, purging it if expired.

        Args:
            key: Store key.

        Returns:
            The record, or None.
        """
        record = self._records.get(key)
        if record is None:
            return None
        if record.is_expired(self.now()):
            del self._records[key]
            return None
        return record

    async def set(self, key: str, count: int, window: int) -> None:
        """Replace the record for ``key``.

        Args:
            key: Store key.
            count: New attempt count.
            window: Milliseconds until expiry.
        """
        now = self.now()
        self._records[key] = CounterRecord(count=count, expires_at=now + window)
        self._maybe_sweep(now)

    async def delete(self, key: str) -> None:
        """Remove the record for ``key``.

        Args:
            key: Store key.
        """
        self._records.pop(key, None)

    def _live_aggregate(self, global_key: str) -> Optional[GlobalAggregateRecord]:
        """Return the aggregate if its window is still open, dropping it otherwise.

        Args:
            global_key: Aggregate key.

        Returns:
            The live aggregate, or None.
        """
        aggregate = self._aggregates.get(global_key)
        if aggregate is not None and aggregate.is_expired(self.now()):
            del self._aggregates[global_key]
            return None
        return aggregate

    async def add_to_global(self, global_key: str, member: str, duration: int, reset_time_on_retry: bool = False) -> int:
        """Register a blocked local key against an aggregate.

        Args:
            global_key: Aggregate key.
            member: Local store key.
            duration: Aggregate window in ms.
            reset_time_on_retry: Restart the expiry when ``member`` is already present.

        Returns:
            Member count after registration.
        """
        now = self.now()
        aggregate = self._live_aggregate(global_key)
        if aggregate is None:
            aggregate = GlobalAggregateRecord(expires_at=now + duration, members={member})
            self._aggregates[global_key] = aggregate
        elif member not in aggregate.members:
            aggregate.members.add(member)
            aggregate.expires_at = max(aggregate.expires_at, now + duration)
        elif reset_time_on_retry:
            aggregate.expires_at = now + duration
        return len(aggregate.members)

    async def is_global_member(self, global_key: str, member: str) -> bool:
        """Tell whether ``member`` is registered against a live aggregate.

        Args:
            global_key: Aggregate key.
            member: Local store key.

        Returns:
            True when the live aggregate contains ``member``.
        """
        aggregate = self._live_aggregate(global_key)
        return aggregate is not None and member in aggregate.members

    async def count_elements_global(self, global_key: str) -> int:
        """Count members of a live aggregate.

        Args:
            global_key: Aggregate key.

        Returns:
            Member count, 0 when absent or elapsed.
        """
        aggregate = self._live_aggregate(global_key)
        return len(aggregate.members) if aggregate else 0

    def sweep(self, now: Optional[int] = None) -> int:
        """Drop every record and aggregate that has expired.

        Args:
            now: Current time in epoch ms; read from the clock when None.

        Returns:
            The number of entries removed.
        """
        now = self.now() if now is None else now
        self._last_sweep = now
        stale = [key for key, record in self._records.items() if record.is_expired(now)]
        for key in stale:
            del self._records[key]
        stale_aggregates = [key for key, aggregate in self._aggregates.items() if aggregate.is_expired(now)]
        for key in stale_aggregates:
            del self._aggregates[key]
        removed = len(stale) + len(stale_aggregates)
        if removed:
            logger.debug(f"Swept {removed} expired entries from memory store")
        return removed

    def _maybe_sweep(self, now: int) -> None:
        """Sweep inline when no background task runs and the interval has elapsed.

        Args:
            now: Current time in epoch ms.
        """
        if self._sweep_task is not None:
            return
        if self._last_sweep is None:
            self._last_sweep = now
        elif now - self._last_sweep >= self.sweep_interval * 1000:
            self.sweep(now)

    def __len__(self) -> int:
        """Return the number of stored counter records, expired or not.

        Returns:
            Record count.
        """
        return len(self._records)

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(f"Memory store sweep started (interval={self.sweep_interval}s)")

    async def shutdown(self) -> None:
        """Cancel the sweep task."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
            logger.info("Memory store sweep stopped")

    async def _sweep_loop(self) -> None:
        """Periodically sweep expired entries."""
        while True:
            try:
                await asyncio.sleep(self.sweep_interval)
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in memory store sweep: {e}", exc_info=True)
