# -*- coding: utf-8 -*-
"""Location: ./floodgate/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Floodgate: fixed-window request admission with two-tier blocking.
Exposes the core components:
- Antiflood (per-request entry point)
- AdmissionEngine and decide (decision engine)
- MemoryStore, RedisStore (counter stores)
- NotificationHub, SubscribeHandle (observer fan-out)
- Outcome, AdmissionResult, AdmissionEvent (results and events)
"""

__version__ = "0.3.0"

# First-Party
from floodgate.admission import Antiflood, default_fail_callback
from floodgate.config import AdmissionConfig, FailurePolicy, FloodgateSettings, get_settings, GlobalConfig
from floodgate.engine import AdmissionEngine, decide
from floodgate.errors import ConfigurationError, FloodgateError, StoreError
from floodgate.hooks import NotificationHub, SubscribeHandle
from floodgate.models import AdmissionEvent, AdmissionResult, BlockScope, CounterRecord, Outcome
from floodgate.stores import CounterStore, MemoryStore, RedisStore

__all__ = [
    "AdmissionConfig",
    "AdmissionEngine",
    "AdmissionEvent",
    "AdmissionResult",
    "Antiflood",
    "BlockScope",
    "ConfigurationError",
    "CounterRecord",
    "CounterStore",
    "decide",
    "default_fail_callback",
    "FailurePolicy",
    "FloodgateError",
    "FloodgateSettings",
    "get_settings",
    "GlobalConfig",
    "MemoryStore",
    "NotificationHub",
    "Outcome",
    "RedisStore",
    "StoreError",
    "SubscribeHandle",
]
