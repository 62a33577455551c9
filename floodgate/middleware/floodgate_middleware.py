# -*- coding: utf-8 -*-
"""Location: ./floodgate/middleware/floodgate_middleware.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Floodgate middleware.

Puts an ``Antiflood`` guard in front of every request of a Starlette or
FastAPI application. Health and metrics endpoints are skipped by default so
that probes never consume a caller's attempts.

Pass a guard built by the application with ``antiflood=`` and hand its
``lifespan`` to the application, so the store is started and shut down with
it. A guard built from keyword arguments is created lazily by Starlette and
never sees the lifespan; its memory store then reclaims expired records on
writes instead of from a background task.

Examples:
    >>> from fastapi import FastAPI  # doctest: +SKIP
    >>> from floodgate.middleware.floodgate_middleware import FloodgateMiddleware  # doctest: +SKIP
    >>> from floodgate.admission import Antiflood  # doctest: +SKIP
    >>> guard = Antiflood(options={"tries": 5}, global_options={})  # doctest: +SKIP
    >>> app = FastAPI(lifespan=guard.lifespan)  # doctest: +SKIP
    >>> app.add_middleware(FloodgateMiddleware, antiflood=guard)  # doctest: +SKIP
"""

# Standard
import logging
from typing import Any, Callable, Iterable, Optional

# Third-Party
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# First-Party
from floodgate.admission import Antiflood

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_PATHS = ("/health", "/healthz", "/ready", "/metrics")


class FloodgateMiddleware(BaseHTTPMiddleware):
    """Admission control for every request that reaches the application."""

    def __init__(self, app, antiflood: Optional[Antiflood] = None, exclude_paths: Optional[Iterable[str]] = None, **antiflood_kwargs: Any):
        """Initialize the middleware.

        Args:
            app: ASGI application.
            antiflood: A configured guard; built from ``antiflood_kwargs`` when None.
            exclude_paths: Paths that bypass admission; defaults to health and metrics endpoints.
            **antiflood_kwargs: Forwarded to ``Antiflood`` (store, options, global_options, extensions, settings).
        """
        super().__init__(app)
        self.antiflood = antiflood if antiflood is not None else Antiflood(**antiflood_kwargs)
        self.exclude_paths = frozenset(exclude_paths if exclude_paths is not None else DEFAULT_EXCLUDED_PATHS)
        logger.info(f"Floodgate middleware initialized (excluded paths: {sorted(self.exclude_paths)})")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Admit or reject the request.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler in the chain.

        Returns:
            The downstream response, or the rejection response.
        """
        if request.url.path in self.exclude_paths:
            return await call_next(request)
        return await self.antiflood.handle(request, call_next)
