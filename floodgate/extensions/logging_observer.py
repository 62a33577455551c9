# -*- coding: utf-8 -*-
"""Location: ./floodgate/extensions/logging_observer.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Logging extension.

Examples:
    >>> from floodgate.hooks import NotificationHub
    >>> hub = NotificationHub()
    >>> hub.register_extensions(logging_extension())
    >>> len(hub.observers_for(Outcome.BLOCKED))
    1
"""

# Standard
import logging
from typing import Callable, Optional

# First-Party
from floodgate.hooks import SubscribeHandle
from floodgate.models import AdmissionEvent, Outcome

_DEFAULT_LEVELS = {
    Outcome.ALLOWED: logging.DEBUG,
    Outcome.LIMIT_JUST_REACHED: logging.INFO,
    Outcome.BLOCKED: logging.WARNING,
}


def logging_extension(logger: Optional[logging.Logger] = None, levels: Optional[dict] = None) -> Callable[[SubscribeHandle], None]:
    """Build an extension that logs every admission outcome.

    Args:
        logger: Logger to write to; defaults to ``floodgate.admissions``.
        levels: Log level per outcome; missing outcomes use the defaults
            (allowed: DEBUG, limit_just_reached: INFO, blocked: WARNING).

    Returns:
        The extension callable.
    """
    target = logger or logging.getLogger("floodgate.admissions")
    resolved = {**_DEFAULT_LEVELS, **(levels or {})}

    def _log(event: AdmissionEvent) -> None:
        suffix = " (degraded)" if event.degraded else ""
        target.log(
            resolved[event.outcome],
            f"{event.outcome.value} [{event.scope.value}] key={event.key} count={event.count} next_valid_request_date={event.next_valid_request_date}{suffix}",
        )

    def extension(handle: SubscribeHandle) -> None:
        handle.subscribe(None, _log)

    return extension
