# -*- coding: utf-8 -*-
"""Location: ./floodgate/stores/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Counter store backends.
Exposes the store contract and its implementations:
- CounterStore (abstract contract)
- MemoryStore (single-process reference backend)
- RedisStore (shared backend on redis.asyncio)
"""

# First-Party
from floodgate.stores.base import CounterStore, KeyedLock
from floodgate.stores.memory import MemoryStore
from floodgate.stores.redis_store import RedisStore

__all__ = ["CounterStore", "KeyedLock", "MemoryStore", "RedisStore"]
