# -*- coding: utf-8 -*-
"""Location: ./tests/unit/floodgate/conftest.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Shared fixtures for floodgate unit tests.
"""

# Third-Party
import pytest

# First-Party
from floodgate.config import AdmissionConfig, FloodgateSettings, GlobalConfig
from floodgate.stores.memory import MemoryStore


class FakeClock:
    """Virtual epoch-ms clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def tick(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def settings(monkeypatch):
    """Settings built from a clean environment."""
    for name in ("FLOODGATE_TRIES", "FLOODGATE_TIME_LIMIT", "FLOODGATE_TIME_BLOCKED", "FLOODGATE_PREFIX", "FLOODGATE_REDIS_URL", "FLOODGATE_STORE_FAILURE_POLICY"):
        monkeypatch.delenv(name, raising=False)
    return FloodgateSettings(_env_file=None)


@pytest.fixture
def config(settings):
    return AdmissionConfig.resolve({}, settings=settings)


@pytest.fixture
def global_config(settings):
    return GlobalConfig.resolve({}, settings=settings)
