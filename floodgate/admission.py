# -*- coding: utf-8 -*-
"""Location: ./floodgate/admission.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Admission entry point.

``Antiflood`` is what a host pipeline calls once per request. It resolves
its configuration once, extracts the caller identity (and, with a global
tier, the broader identity), runs the engine, and then either hands the
request to the continuation or calls the rejection handler. A blocked
request never reaches the continuation.

Rejection handlers have the signature::

    fail_callback(request, call_next, next_valid_request_date) -> Response

and may be sync or async. ``next_valid_request_date`` is epoch ms or None.

Examples:
    >>> from floodgate.stores.memory import MemoryStore
    >>> guard = Antiflood(MemoryStore(), options={"tries": 5, "prefix": "login:"}, settings=FloodgateSettings())
    >>> (guard.config.tries, guard.config.prefix, guard.global_config)
    (5, 'login:', None)
"""

# Future
from __future__ import annotations

# Standard
from contextlib import asynccontextmanager
import inspect
import logging
import math
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, Sequence, Union

# Third-Party
from starlette.requests import Request
from starlette.responses import Response

# First-Party
from floodgate.config import AdmissionConfig, FloodgateSettings, get_settings, GlobalConfig
from floodgate.engine import AdmissionEngine
from floodgate.hooks import Extension
from floodgate.keys import client_address, client_network
from floodgate.models import AdmissionResult, BlockScope, now_ms
from floodgate.stores.base import CounterStore
from floodgate.stores.memory import MemoryStore
from floodgate.stores.redis_store import RedisStore
from floodgate.utils.orjson_response import ORJSONResponse

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

TOO_MANY_REQUESTS_TEXT = "Too many requests."


def default_fail_callback(request: Request, call_next: CallNext, next_valid_request_date: Optional[int]) -> Response:
    """Reject with 429 and a JSON body telling the caller when to retry.

    Args:
        request: The rejected request.
        call_next: The continuation, deliberately not called.
        next_valid_request_date: Epoch ms before which retrying is pointless, or None.

    Returns:
        A 429 response; ``Retry-After`` is set when the date is known.

    Examples:
        >>> response = default_fail_callback(None, None, None)
        >>> response.status_code
        429
        >>> response.body
        b'{"error":{"text":"Too many requests.","nextValidRequestDate":null}}'
        >>> "retry-after" in response.headers
        False
    """
    headers = {}
    if next_valid_request_date is not None:
        headers["Retry-After"] = str(max(0, math.ceil((next_valid_request_date - now_ms()) / 1000)))
    return ORJSONResponse(
        status_code=429,
        content={"error": {"text": TOO_MANY_REQUESTS_TEXT, "nextValidRequestDate": next_valid_request_date}},
        headers=headers,
    )


def build_store(settings: FloodgateSettings) -> CounterStore:
    """Create the store the settings ask for.

    Args:
        settings: Loaded settings.

    Returns:
        A RedisStore when ``redis_url`` is set, a MemoryStore otherwise.

    Examples:
        >>> type(build_store(FloodgateSettings())).__name__
        'MemoryStore'
    """
    if settings.redis_url:
        return RedisStore(url=settings.redis_url, lock_timeout=settings.lock_timeout)
    return MemoryStore(sweep_interval=settings.sweep_interval)


async def _call(func: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async callable and return its result.

    Args:
        func: The callable.
        *args: Positional arguments.

    Returns:
        The (awaited) result.
    """
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Antiflood:
    """Per-request admission orchestration for a single route group or app."""

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        options: Optional[Mapping[str, Any]] = None,
        global_options: Optional[Mapping[str, Any]] = None,
        extensions: Union[Extension, Sequence[Extension], None] = None,
        settings: Optional[FloodgateSettings] = None,
    ):
        """Resolve configuration and build the engine.

        Args:
            store: Counter store; built from settings when None.
            options: Local tier overrides (``tries``, ``timeLimit``, ``failCallback``...).
            global_options: Global tier overrides; None disables the global tier, ``{}`` enables it with defaults.
            extensions: Extension callable(s) subscribing observers.
            settings: Settings to take defaults from.

        Raises:
            ConfigurationError: If any option is invalid.
        """
        settings = settings or get_settings()
        self.config = AdmissionConfig.resolve(options, settings)
        self.global_config = GlobalConfig.resolve(global_options, settings) if global_options is not None else None
        self.store = store if store is not None else build_store(settings)
        self.engine = AdmissionEngine(self.store, self.config, self.global_config, extensions)

    async def identify(self, request: Any) -> tuple[Any, Any]:
        """Extract the local and global identities of a request.

        Args:
            request: The host request.

        Returns:
            ``(identity, global_identity)``; the latter is None without a global tier.
        """
        identity = await _call(self.config.get_key or client_address, request)
        global_identity = None
        if self.global_config is not None:
            global_identity = await _call(self.global_config.get_key or client_network, request)
        return identity, global_identity

    async def evaluate(self, request: Any) -> AdmissionResult:
        """Run the admission decision for a request without acting on it.

        Args:
            request: The host request.

        Returns:
            The admission result.
        """
        identity, global_identity = await self.identify(request)
        return await self.engine.evaluate(identity, global_identity, request=request)

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        """Admit or reject one request.

        Args:
            request: The incoming request.
            call_next: The continuation of the pipeline.

        Returns:
            The continuation's response, or the rejection handler's.
        """
        result = await self.evaluate(request)
        state = getattr(request, "state", None)
        if state is not None:
            state.floodgate = result
        if result.admitted:
            return await call_next(request)

        if result.scope is BlockScope.GLOBAL:
            callback = self.global_config.fail_callback or default_fail_callback
        else:
            callback = self.config.fail_callback or default_fail_callback
        return await _call(callback, request, call_next, result.next_valid_request_date)

    async def reset(self, identity: Any) -> None:
        """Clear the counter of an identity.

        Args:
            identity: Caller identity as returned by ``get_key``.
        """
        await self.engine.reset(identity)

    async def start(self) -> None:
        """Start store background work."""
        await self.store.start()

    async def shutdown(self) -> None:
        """Drain observers and stop the store."""
        await self.engine.shutdown()
        await self.store.shutdown()

    @asynccontextmanager
    async def lifespan(self, app: Any = None) -> AsyncIterator[None]:
        """ASGI lifespan running ``start`` and ``shutdown`` around the app.

        Args:
            app: The ASGI application (unused).

        Yields:
            None while the application is serving.

        Examples:
            >>> from fastapi import FastAPI  # doctest: +SKIP
            >>> guard = Antiflood()  # doctest: +SKIP
            >>> app = FastAPI(lifespan=guard.lifespan)  # doctest: +SKIP
        """
        await self.start()
        try:
            yield
        finally:
            await self.shutdown()
