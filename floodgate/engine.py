# -*- coding: utf-8 -*-
"""Location: ./floodgate/engine.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Admission decision engine.

``decide`` is the pure fixed-window state machine. ``AdmissionEngine`` wraps
it with the store round trip, the optional global tier and observer
notification:

1. lock the local key (one evaluation per key at a time);
2. read the counter;
3. with a global tier, reject at once if the aggregate is at its limit;
4. decide, then write the counter unless blocked;
5. on ``limit_just_reached``, register the key with the global aggregate
   under the aggregate lock, which is separate from the key locks;
6. emit the committed result to observers.

The request that reaches the limit is still admitted; the next one, and
every one after it until the blocked window ends, is not.
"""

# Future
from __future__ import annotations

# Standard
import logging
from typing import Any, Optional, Sequence, Union

# First-Party
from floodgate.config import AdmissionConfig, FailurePolicy, GlobalConfig
from floodgate.errors import StoreError
from floodgate.hooks import Extension, NotificationHub
from floodgate.keys import derive_key
from floodgate.models import AdmissionEvent, AdmissionResult, BlockScope, CounterRecord, Decision, Outcome
from floodgate.stores.base import CounterStore

logger = logging.getLogger(__name__)


def decide(previous: Optional[CounterRecord], tries: int, time_limit: int, time_blocked: int) -> Decision:
    """Decide the outcome of one attempt from the previous counter.

    An absent record counts as zero attempts.

    Args:
        previous: The live counter record, or None.
        tries: Attempts allowed per window.
        time_limit: Window in ms for non-terminal counts.
        time_blocked: Window in ms once the limit is reached.

    Returns:
        The outcome with the count and window to store.

    Examples:
        >>> decide(None, 10, 60000, 300000)
        Decision(outcome=<Outcome.ALLOWED: 'allowed'>, count=1, window=60000)
        >>> decide(CounterRecord(count=8, expires_at=0), 10, 60000, 300000).count
        9
        >>> decide(CounterRecord(count=9, expires_at=0), 10, 60000, 300000)
        Decision(outcome=<Outcome.LIMIT_JUST_REACHED: 'limit_just_reached'>, count=10, window=300000)
        >>> decide(CounterRecord(count=10, expires_at=0), 10, 60000, 300000)
        Decision(outcome=<Outcome.BLOCKED: 'blocked'>, count=10, window=None)
        >>> decide(None, 1, 60000, 300000).outcome
        <Outcome.LIMIT_JUST_REACHED: 'limit_just_reached'>
    """
    count = previous.count if previous is not None else 0
    if count >= tries:
        return Decision(outcome=Outcome.BLOCKED, count=count)
    if count + 1 == tries:
        return Decision(outcome=Outcome.LIMIT_JUST_REACHED, count=tries, window=time_blocked)
    return Decision(outcome=Outcome.ALLOWED, count=count + 1, window=time_limit)


class AdmissionEngine:
    """Runs admission evaluations against a counter store.

    Examples:
        >>> import asyncio
        >>> from floodgate.config import FloodgateSettings
        >>> from floodgate.stores.memory import MemoryStore
        >>> engine = AdmissionEngine(MemoryStore(), AdmissionConfig.resolve({"tries": 2}, settings=FloodgateSettings()))
        >>> async def burst():
        ...     return [(await engine.evaluate("10.0.0.1")).outcome.value for _ in range(3)]
        >>> asyncio.run(burst())
        ['allowed', 'limit_just_reached', 'blocked']
    """

    def __init__(
        self,
        store: CounterStore,
        config: AdmissionConfig,
        global_config: Optional[GlobalConfig] = None,
        extensions: Union[Extension, Sequence[Extension], None] = None,
    ):
        """Initialize the engine and register extensions.

        Args:
            store: Counter store backend.
            config: Local tier configuration.
            global_config: Global tier configuration; None disables the tier.
            extensions: Extension callable(s) receiving a subscribe handle.
        """
        self.store = store
        self.config = config
        self.global_config = global_config
        self.hub = NotificationHub()
        self.hub.register_extensions(extensions)
        self.hub.freeze()
        logger.info(
            f"Admission engine ready: tries={config.tries}, time_limit={config.time_limit}ms, time_blocked={config.time_blocked}ms, "
            f"global={'on' if global_config else 'off'}, store={type(store).__name__}, failure_policy={config.store_failure_policy.value}"
        )

    def key_for(self, identity: Any) -> str:
        """Return the local store key of an identity.

        Args:
            identity: Caller identity.

        Returns:
            The prefixed, hashed store key.
        """
        return derive_key(self.config.prefix, identity)

    def global_key_for(self, global_identity: Any) -> str:
        """Return the aggregate key of a global identity.

        Args:
            global_identity: Broader caller identity (subnet, tenant...).

        Returns:
            The prefixed, hashed aggregate key.

        Raises:
            RuntimeError: If the engine has no global tier.
        """
        if self.global_config is None:
            raise RuntimeError("Global tier is not configured")
        return derive_key(self.global_config.prefix, global_identity)

    async def evaluate(self, identity: Any, global_identity: Any = None, request: Any = None) -> AdmissionResult:
        """Evaluate one attempt for ``identity``.

        Args:
            identity: Caller identity for the local tier.
            global_identity: Identity for the global tier; defaults to ``identity``.
            request: Host request, passed through to observers.

        Returns:
            The admission result. Store failures are resolved by the failure policy.
        """
        key = self.key_for(identity)
        global_key = None
        if self.global_config is not None:
            global_key = self.global_key_for(identity if global_identity is None else global_identity)

        try:
            async with self.store.lock(key):
                result = await self._evaluate_locked(key, global_key)
                self.hub.emit(AdmissionEvent.from_result(result, request))
                return result
        except StoreError as e:
            result = self._degraded(key, e)
            self.hub.emit(AdmissionEvent.from_result(result, request))
            return result

    async def _evaluate_locked(self, key: str, global_key: Optional[str]) -> AdmissionResult:
        """Read, decide and write while holding the key lock.

        Args:
            key: Local store key.
            global_key: Aggregate key, or None without a global tier.

        Returns:
            The committed admission result.
        """
        previous = await self.store.get(key)
        hint = previous.expires_at if previous is not None else None

        if global_key is not None:
            blocked_members = await self.store.count_elements_global(global_key)
            if blocked_members >= self.global_config.blocks_limit:
                logger.info(f"Global block for {key}: {blocked_members} blocked keys under {global_key}")
                return AdmissionResult(
                    outcome=Outcome.BLOCKED,
                    scope=BlockScope.GLOBAL,
                    key=key,
                    count=previous.count if previous is not None else 0,
                    next_valid_request_date=hint,
                )

        decision = decide(previous, self.config.tries, self.config.time_limit, self.config.time_blocked)
        if decision.outcome is Outcome.BLOCKED:
            logger.debug(f"Blocked {key} until {hint}")
            return AdmissionResult(outcome=Outcome.BLOCKED, key=key, count=decision.count, next_valid_request_date=hint)

        await self.store.set(key, decision.count, decision.window)
        logger.debug(f"{decision.outcome.value} {key} (count={decision.count}, window={decision.window}ms)")

        if decision.outcome is Outcome.LIMIT_JUST_REACHED and global_key is not None:
            await self._register_global_block(global_key, key)

        return AdmissionResult(outcome=decision.outcome, key=key, count=decision.count)

    async def _register_global_block(self, global_key: str, key: str) -> None:
        """Record a newly blocked local key against its aggregate.

        The blocked window is used only when this registration adds the member
        that brings the aggregate to ``blocks_limit``; re-registering a key that
        is already a member never does. A failure here is logged; the local
        decision is already committed.

        Args:
            global_key: Aggregate key.
            key: Local store key that just reached its limit.
        """
        gcfg = self.global_config
        try:
            async with self.store.lock_global(global_key):
                current = await self.store.count_elements_global(global_key)
                is_new = not await self.store.is_global_member(global_key, key)
                duration = gcfg.time_blocked if is_new and current + 1 >= gcfg.blocks_limit else gcfg.time_limit
                members = await self.store.add_to_global(global_key, key, duration, gcfg.reset_time_on_retry)
        except StoreError as e:
            logger.warning(f"Could not register {key} with global aggregate {global_key}: {e}")
            return
        logger.info(f"Registered {key} under {global_key} ({members}/{gcfg.blocks_limit} blocked keys, window={duration}ms)")

    def _degraded(self, key: str, error: StoreError) -> AdmissionResult:
        """Resolve an evaluation the store could not serve.

        Args:
            key: Local store key.
            error: The store failure.

        Returns:
            An allowed (fail open) or blocked (fail closed) result flagged as degraded.
        """
        policy = self.config.store_failure_policy
        outcome = Outcome.ALLOWED if policy is FailurePolicy.OPEN else Outcome.BLOCKED
        logger.warning(f"Counter store unavailable for {key}, failing {policy.value}: {error}")
        return AdmissionResult(outcome=outcome, key=key, degraded=True)

    async def reset(self, identity: Any) -> None:
        """Forget the counter of ``identity``, e.g. after a successful login.

        Args:
            identity: Caller identity.
        """
        key = self.key_for(identity)
        async with self.store.lock(key):
            await self.store.delete(key)
        logger.debug(f"Reset counter for {key}")

    async def shutdown(self) -> None:
        """Wait for in-flight observer tasks."""
        await self.hub.drain(timeout=5.0)
