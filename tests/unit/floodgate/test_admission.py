# -*- coding: utf-8 -*-
"""Location: ./tests/unit/floodgate/test_admission.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Tests for the Antiflood entry point.
"""

# Standard
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

# Third-Party
import orjson
import pytest
from starlette.responses import Response

# First-Party
from floodgate.admission import Antiflood, build_store, default_fail_callback
from floodgate.errors import ConfigurationError
from floodgate.models import BlockScope, Outcome
from floodgate.stores.memory import MemoryStore
from floodgate.stores.redis_store import RedisStore


def _request(host="198.51.100.7"):
    return SimpleNamespace(client=SimpleNamespace(host=host), state=SimpleNamespace(), headers={})


@pytest.fixture
def call_next():
    return AsyncMock(return_value=Response("downstream", status_code=200))


@pytest.mark.asyncio
async def test_admitted_request_reaches_continuation(store, settings, call_next):
    guard = Antiflood(store, options={"tries": 3}, settings=settings)
    request = _request()

    response = await guard.handle(request, call_next)

    assert response.status_code == 200
    call_next.assert_awaited_once_with(request)
    assert request.state.floodgate.outcome is Outcome.ALLOWED


@pytest.mark.asyncio
async def test_blocked_request_never_reaches_continuation(store, settings, call_next):
    guard = Antiflood(store, options={"tries": 1}, settings=settings)

    await guard.handle(_request(), call_next)
    response = await guard.handle(_request(), call_next)

    assert response.status_code == 429
    assert call_next.await_count == 1


@pytest.mark.asyncio
async def test_fail_callback_receives_continuation_and_date(store, settings, call_next, clock):
    fail = MagicMock(return_value=Response(status_code=429))
    guard = Antiflood(store, options={"tries": 1, "timeBlocked": 5_000, "failCallback": fail}, settings=settings)
    request = _request()

    await guard.handle(request, call_next)
    await guard.handle(request, call_next)

    fail.assert_called_once_with(request, call_next, clock() + 5_000)


@pytest.mark.asyncio
async def test_async_get_key(store, settings):
    async def tenant(request):
        return request.headers["x-tenant"]

    guard = Antiflood(store, options={"getKey": tenant}, settings=settings)
    request = SimpleNamespace(headers={"x-tenant": "acme"}, state=SimpleNamespace())

    result = await guard.evaluate(request)

    assert result.key == guard.engine.key_for("acme")


@pytest.mark.asyncio
async def test_identify_uses_client_network_for_global_tier(store, settings):
    guard = Antiflood(store, global_options={}, settings=settings)
    assert await guard.identify(_request("10.20.30.40")) == ("10.20.30.40", "10.20.30.0/24")


@pytest.mark.asyncio
async def test_identify_without_global_tier(store, settings):
    guard = Antiflood(store, settings=settings)
    assert await guard.identify(_request("10.20.30.40")) == ("10.20.30.40", None)


@pytest.mark.asyncio
async def test_global_block_uses_global_callback(store, settings, call_next):
    local_fail = MagicMock(return_value=Response(status_code=429))
    global_fail = AsyncMock(return_value=Response(status_code=503))
    guard = Antiflood(
        store,
        options={"tries": 1, "failCallback": local_fail},
        global_options={"blocksLimit": 1, "failCallback": global_fail},
        settings=settings,
    )

    await guard.handle(_request("10.0.0.1"), call_next)
    response = await guard.handle(_request("10.0.0.2"), call_next)

    assert response.status_code == 503
    local_fail.assert_not_called()
    global_fail.assert_awaited_once()


@pytest.mark.asyncio
async def test_global_block_falls_back_to_default_callback(store, settings, call_next):
    guard = Antiflood(store, options={"tries": 1}, global_options={"blocksLimit": 1}, settings=settings)

    await guard.handle(_request("10.0.0.1"), call_next)
    request = _request("10.0.0.2")
    response = await guard.handle(request, call_next)

    assert response.status_code == 429
    assert request.state.floodgate.scope is BlockScope.GLOBAL
    assert orjson.loads(response.body) == {"error": {"text": "Too many requests.", "nextValidRequestDate": None}}


@pytest.mark.asyncio
async def test_reset(store, settings, call_next):
    guard = Antiflood(store, options={"tries": 1}, settings=settings)
    await guard.handle(_request(), call_next)

    await guard.reset("198.51.100.7")

    assert (await guard.handle(_request(), call_next)).status_code == 200


def test_invalid_options_raise(store, settings):
    with pytest.raises(ConfigurationError):
        Antiflood(store, options={"tries": 0}, settings=settings)
    with pytest.raises(ConfigurationError):
        Antiflood(store, global_options={"blocksLimit": -1}, settings=settings)


def test_default_fail_callback_retry_after():
    with patch("floodgate.admission.now_ms", return_value=10_000):
        response = default_fail_callback(None, None, 12_001)

    assert response.status_code == 429
    assert response.headers["retry-after"] == "3"
    assert orjson.loads(response.body)["error"]["nextValidRequestDate"] == 12_001


def test_build_store(settings):
    assert isinstance(build_store(settings), MemoryStore)
    redis_settings = settings.model_copy(update={"redis_url": "redis://localhost:6379/2"})
    with patch("floodgate.stores.redis_store.aioredis.from_url", return_value=MagicMock()):
        assert isinstance(build_store(redis_settings), RedisStore)


@pytest.mark.asyncio
async def test_lifespan_starts_and_stops_store(settings):
    store = MagicMock(spec=MemoryStore)
    store.start = AsyncMock()
    store.shutdown = AsyncMock()
    guard = Antiflood(store, settings=settings)

    async with guard.lifespan():
        store.start.assert_awaited_once()
        store.shutdown.assert_not_awaited()

    store.shutdown.assert_awaited_once()
