# -*- coding: utf-8 -*-
"""Location: ./floodgate/hooks.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Notification hub.

Observers subscribe to one or more outcomes and are told about every
evaluation after its store mutation has been committed. They are side
channels only: they receive a frozen event, their return value is ignored,
and an observer that raises is logged and skipped.

Extensions are plain callables invoked once, at engine construction, with a
``SubscribeHandle``. Once construction finishes the hub is frozen.

Examples:
    >>> seen = []
    >>> hub = NotificationHub()
    >>> hub.register_extensions(lambda h: h.subscribe(Outcome.BLOCKED, seen.append))
    >>> hub.freeze()
    >>> from floodgate.models import AdmissionEvent
    >>> hub.emit(AdmissionEvent(outcome=Outcome.BLOCKED, key="k", count=3))
    >>> [e.outcome.value for e in seen]
    ['blocked']
    >>> hub.emit(AdmissionEvent(outcome=Outcome.ALLOWED, key="k", count=1))
    >>> len(seen)
    1
"""

# Future
from __future__ import annotations

# Standard
import asyncio
import inspect
import logging
from typing import Any, Callable, Iterable, Optional, Sequence, Union

# First-Party
from floodgate.errors import ConfigurationError
from floodgate.models import AdmissionEvent, Outcome

logger = logging.getLogger(__name__)

Observer = Callable[[AdmissionEvent], Any]
Extension = Callable[["SubscribeHandle"], Any]
OutcomeSelector = Union[Outcome, str, Iterable[Union[Outcome, str]], None]

ALL_OUTCOMES = "*"


def _outcomes(selector: OutcomeSelector) -> list[Outcome]:
    """Expand a subscription selector into concrete outcomes.

    Args:
        selector: One outcome, an iterable of outcomes, or None / ``"*"`` for all.

    Returns:
        Outcomes in declaration order, without duplicates.

    Raises:
        ConfigurationError: If a selector names an unknown outcome.

    Examples:
        >>> [o.value for o in _outcomes(None)]
        ['allowed', 'limit_just_reached', 'blocked']
        >>> [o.value for o in _outcomes("blocked")]
        ['blocked']
        >>> [o.value for o in _outcomes([Outcome.BLOCKED, "allowed", "blocked"])]
        ['blocked', 'allowed']
    """
    if selector is None or selector == ALL_OUTCOMES:
        return list(Outcome)
    if isinstance(selector, (Outcome, str)):
        selector = [selector]
    result: list[Outcome] = []
    for item in selector:
        try:
            outcome = Outcome(item)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown outcome {item!r}") from exc
        if outcome not in result:
            result.append(outcome)
    return result


class SubscribeHandle:
    """Registration surface handed to extensions."""

    def __init__(self, hub: "NotificationHub"):
        """Bind the handle to a hub.

        Args:
            hub: The hub subscriptions are recorded on.
        """
        self._hub = hub

    def subscribe(self, outcome: OutcomeSelector, observer: Observer) -> None:
        """Subscribe an observer to one or more outcomes.

        Args:
            outcome: Outcome(s) to listen for; None or ``"*"`` for all three.
            observer: Callable receiving an AdmissionEvent; may be a coroutine function.
        """
        self._hub.subscribe(outcome, observer)


class NotificationHub:
    """Ordered fan-out of admission events to observers."""

    def __init__(self) -> None:
        """Create an empty, unfrozen hub."""
        self._registrations: list[tuple[Outcome, Observer]] = []
        self._frozen = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def frozen(self) -> bool:
        """Return True once no more subscriptions are accepted.

        Returns:
            The frozen flag.
        """
        return self._frozen

    def subscribe(self, outcome: OutcomeSelector, observer: Observer) -> None:
        """Record a subscription.

        Args:
            outcome: Outcome(s) to listen for.
            observer: The observer callable.

        Raises:
            ConfigurationError: If the hub is frozen or the observer is not callable.
        """
        if self._frozen:
            raise ConfigurationError("Observers must subscribe before the first admission evaluation")
        if not callable(observer):
            raise ConfigurationError(f"Observer {observer!r} is not callable")
        for item in _outcomes(outcome):
            self._registrations.append((item, observer))
            logger.debug(f"Subscribed {getattr(observer, '__name__', observer)!s} to {item.value}")

    def register_extensions(self, extensions: Union[Extension, Sequence[Extension], None]) -> None:
        """Invoke each extension once with a subscribe handle.

        Args:
            extensions: A single extension callable, an ordered sequence of them, or None.

        Raises:
            ConfigurationError: If an extension is not callable.
        """
        if extensions is None:
            return
        if callable(extensions):
            extensions = [extensions]
        handle = SubscribeHandle(self)
        for extension in extensions:
            if not callable(extension):
                raise ConfigurationError(f"Extension {extension!r} is not callable")
            extension(handle)

    def freeze(self) -> None:
        """Stop accepting subscriptions."""
        self._frozen = True

    def observers_for(self, outcome: Outcome) -> list[Observer]:
        """List observers subscribed to an outcome, in registration order.

        Args:
            outcome: The outcome to look up.

        Returns:
            The matching observers.
        """
        return [observer for kind, observer in self._registrations if kind is outcome]

    def emit(self, event: AdmissionEvent) -> None:
        """Deliver an event to every observer subscribed to its outcome.

        Synchronous observers run inline; coroutine observers are scheduled on
        the running loop and not awaited. Failures are logged, never raised.

        Args:
            event: The committed admission event.
        """
        for observer in self.observers_for(event.outcome):
            try:
                result = observer(event)
                if inspect.isawaitable(result):
                    self._schedule(result, observer)
            except Exception as e:
                logger.error(f"Observer {getattr(observer, '__name__', observer)!s} failed on {event.outcome.value}: {e}", exc_info=True)

    def _schedule(self, awaitable: Any, observer: Observer) -> None:
        """Run an observer coroutine in the background.

        Args:
            awaitable: The coroutine returned by the observer.
            observer: The observer, for log messages.
        """
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error(f"Observer {getattr(observer, '__name__', observer)!s} failed: {exc}", exc_info=exc)

        task.add_done_callback(_done)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for background observer tasks to finish.

        Args:
            timeout: Seconds to wait before giving up; None waits forever.
        """
        if not self._tasks:
            return
        pending = list(self._tasks)
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning(f"{len(still_pending)} observer task(s) still running after drain")
