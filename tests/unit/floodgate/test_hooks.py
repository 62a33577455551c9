# -*- coding: utf-8 -*-
"""Location: ./tests/unit/floodgate/test_hooks.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Tests for the notification hub.
"""

# Standard
import asyncio
import logging

# Third-Party
import pytest

# First-Party
from floodgate.errors import ConfigurationError
from floodgate.hooks import NotificationHub
from floodgate.models import AdmissionEvent, Outcome


def _event(outcome=Outcome.ALLOWED, **kwargs):
    return AdmissionEvent(outcome=outcome, key="k", **kwargs)


def test_observers_run_in_registration_order():
    calls = []
    hub = NotificationHub()
    hub.subscribe(Outcome.BLOCKED, lambda e: calls.append("first"))
    hub.subscribe("blocked", lambda e: calls.append("second"))
    hub.register_extensions([lambda h: h.subscribe(Outcome.BLOCKED, lambda e: calls.append("third"))])

    hub.emit(_event(Outcome.BLOCKED))

    assert calls == ["first", "second", "third"]


def test_observer_only_receives_subscribed_outcomes():
    seen = []
    hub = NotificationHub()
    hub.subscribe([Outcome.LIMIT_JUST_REACHED, Outcome.BLOCKED], seen.append)

    for outcome in Outcome:
        hub.emit(_event(outcome))

    assert [e.outcome for e in seen] == [Outcome.LIMIT_JUST_REACHED, Outcome.BLOCKED]


@pytest.mark.parametrize("selector", [None, "*"])
def test_wildcard_selector_receives_everything(selector):
    seen = []
    hub = NotificationHub()
    hub.subscribe(selector, seen.append)

    for outcome in Outcome:
        hub.emit(_event(outcome))

    assert len(seen) == 3


def test_failing_observer_is_isolated(caplog):
    seen = []

    def broken(event):
        raise RuntimeError("observer exploded")

    hub = NotificationHub()
    hub.subscribe(None, broken)
    hub.subscribe(None, seen.append)

    with caplog.at_level(logging.ERROR, logger="floodgate.hooks"):
        hub.emit(_event())

    assert len(seen) == 1
    assert "observer exploded" in caplog.text


def test_observer_return_value_is_ignored():
    hub = NotificationHub()
    hub.subscribe(None, lambda e: "ignored")
    hub.emit(_event())


@pytest.mark.asyncio
async def test_async_observer_runs_in_background_and_drains():
    gate = asyncio.Event()
    seen = []

    async def slow(event):
        await gate.wait()
        seen.append(event)

    hub = NotificationHub()
    hub.subscribe(None, slow)
    hub.emit(_event())

    assert seen == []
    gate.set()
    await hub.drain(timeout=1.0)
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_async_observer_failure_is_logged(caplog):
    async def broken(event):
        raise ValueError("async boom")

    hub = NotificationHub()
    hub.subscribe(None, broken)

    with caplog.at_level(logging.ERROR, logger="floodgate.hooks"):
        hub.emit(_event())
        await hub.drain(timeout=1.0)
        await asyncio.sleep(0)

    assert "async boom" in caplog.text


@pytest.mark.asyncio
async def test_drain_times_out_on_stuck_observer(caplog):
    async def stuck(event):
        await asyncio.sleep(3600)

    hub = NotificationHub()
    hub.subscribe(None, stuck)
    hub.emit(_event())

    with caplog.at_level(logging.WARNING, logger="floodgate.hooks"):
        await hub.drain(timeout=0.01)

    assert "still running" in caplog.text
    for task in list(hub._tasks):
        task.cancel()


@pytest.mark.asyncio
async def test_drain_without_tasks_returns():
    await NotificationHub().drain()


def test_subscribe_after_freeze_raises():
    hub = NotificationHub()
    hub.freeze()
    with pytest.raises(ConfigurationError):
        hub.subscribe(None, print)


def test_unknown_outcome_raises():
    with pytest.raises(ConfigurationError):
        NotificationHub().subscribe("throttled", print)


def test_non_callable_observer_and_extension_raise():
    hub = NotificationHub()
    with pytest.raises(ConfigurationError):
        hub.subscribe(None, "not callable")
    with pytest.raises(ConfigurationError):
        hub.register_extensions(["not callable"])


def test_single_extension_callable_is_accepted():
    hub = NotificationHub()
    hub.register_extensions(lambda h: h.subscribe(Outcome.ALLOWED, print))
    assert hub.observers_for(Outcome.ALLOWED) == [print]
    assert hub.observers_for(Outcome.BLOCKED) == []


def test_register_none_is_noop():
    hub = NotificationHub()
    hub.register_extensions(None)
    assert all(hub.observers_for(o) == [] for o in Outcome)
