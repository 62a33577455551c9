# -*- coding: utf-8 -*-
"""Location: ./floodgate/models.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Floodgate data model.

Stored records are plain dataclasses owned by the stores. Results and
events crossing the engine boundary are pydantic models so observers and
host code can serialize them.

All timestamps are epoch milliseconds and all durations are milliseconds.
"""

# Future
from __future__ import annotations

# Standard
from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Any, Optional

# Third-Party
from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds.

    Returns:
        Milliseconds since the epoch.

    Examples:
        >>> now_ms() > 1_600_000_000_000
        True
    """
    return int(time.time() * 1000)


class Outcome(str, Enum):
    """Result of one admission evaluation.

    Examples:
        >>> Outcome.LIMIT_JUST_REACHED.value
        'limit_just_reached'
        >>> Outcome("blocked") is Outcome.BLOCKED
        True
    """

    ALLOWED = "allowed"
    LIMIT_JUST_REACHED = "limit_just_reached"
    BLOCKED = "blocked"


class BlockScope(str, Enum):
    """Tier that produced an admission result."""

    LOCAL = "local"
    GLOBAL = "global"


@dataclass(frozen=True)
class CounterRecord:
    """Attempts seen for one store key in the current window.

    Attributes:
        count: Number of attempts observed in the window.
        expires_at: Epoch ms at which the record stops existing.

    Examples:
        >>> rec = CounterRecord(count=3, expires_at=1000)
        >>> rec.is_expired(999)
        False
        >>> rec.is_expired(1000)
        True
    """

    count: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        """Tell whether the record is logically absent at ``now``.

        Args:
            now: Current time in epoch ms.

        Returns:
            True when ``expires_at <= now``.
        """
        return self.expires_at <= now


@dataclass
class GlobalAggregateRecord:
    """Local keys currently counted as blocked under one broader scope.

    Attributes:
        members: Local store keys registered against the aggregate.
        expires_at: Epoch ms at which the whole aggregate is dropped.
    """

    expires_at: int
    members: set[str] = field(default_factory=set)

    def is_expired(self, now: int) -> bool:
        """Tell whether the aggregate window has elapsed.

        Args:
            now: Current time in epoch ms.

        Returns:
            True when ``expires_at <= now``.
        """
        return self.expires_at <= now


@dataclass(frozen=True)
class Decision:
    """What the decision function wants done with the counter.

    Attributes:
        outcome: The admission outcome.
        count: Count to store, or the unchanged count when blocked.
        window: Window to store in ms, or None when the store must not be written.
    """

    outcome: Outcome
    count: int
    window: Optional[int] = None


class AdmissionResult(BaseModel):
    """Outcome of one evaluation as returned to the entry point.

    Attributes:
        outcome: allowed, limit_just_reached or blocked.
        scope: Tier that produced the result.
        key: Local store key the evaluation ran against.
        count: Counter value after the evaluation.
        next_valid_request_date: Epoch ms hint for when to retry, if known.
        degraded: True when a store failure forced the outcome.

    Examples:
        >>> AdmissionResult(outcome=Outcome.ALLOWED, key="k", count=1).admitted
        True
        >>> AdmissionResult(outcome=Outcome.BLOCKED, key="k", count=10).admitted
        False
    """

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    scope: BlockScope = BlockScope.LOCAL
    key: str
    count: int = 0
    next_valid_request_date: Optional[int] = None
    degraded: bool = False

    @property
    def admitted(self) -> bool:
        """Return True when the request may continue down the pipeline.

        Returns:
            False only for blocked results.
        """
        return self.outcome is not Outcome.BLOCKED


class AdmissionEvent(AdmissionResult):
    """Payload delivered to observers after an evaluation commits.

    Attributes:
        request: The host request object the evaluation ran for, if any.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    request: Any = Field(default=None, exclude=True)

    @classmethod
    def from_result(cls, result: AdmissionResult, request: Any = None) -> "AdmissionEvent":
        """Build an event from an admission result.

        Args:
            result: The committed admission result.
            request: The originating host request.

        Returns:
            The event to hand to observers.

        Examples:
            >>> res = AdmissionResult(outcome=Outcome.BLOCKED, key="k", count=10, next_valid_request_date=5)
            >>> ev = AdmissionEvent.from_result(res, request="req")
            >>> (ev.outcome, ev.request, ev.next_valid_request_date)
            (<Outcome.BLOCKED: 'blocked'>, 'req', 5)
            >>> "request" in ev.model_dump()
            False
        """
        return cls(**result.model_dump(), request=request)
