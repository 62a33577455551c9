# -*- coding: utf-8 -*-
"""Location: ./floodgate/extensions/prometheus.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Prometheus extension.

Counts admission outcomes so dashboards can show how much traffic is being
held back and by which tier.

Supported Metrics:
- floodgate_admissions_total: Counter by ``outcome``, ``scope`` and ``degraded``

Usage:
    from floodgate.extensions import prometheus_extension

    guard = Antiflood(extensions=[prometheus_extension()])
"""

# Standard
from typing import Callable, Optional

# Third-Party
from prometheus_client import CollectorRegistry, Counter, REGISTRY

# First-Party
from floodgate.hooks import SubscribeHandle
from floodgate.models import AdmissionEvent


def prometheus_extension(registry: Optional[CollectorRegistry] = None, namespace: str = "floodgate") -> Callable[[SubscribeHandle], None]:
    """Build an extension that counts admission outcomes.

    The counter is registered when the factory is called, so call it once
    per registry.

    Args:
        registry: Registry to register the counter with; the global one by default.
        namespace: Metric name prefix.

    Returns:
        The extension callable.

    Examples:
        >>> from prometheus_client import CollectorRegistry
        >>> from floodgate.hooks import NotificationHub
        >>> from floodgate.models import AdmissionEvent, Outcome
        >>> registry = CollectorRegistry()
        >>> hub = NotificationHub()
        >>> hub.register_extensions(prometheus_extension(registry))
        >>> hub.emit(AdmissionEvent(outcome=Outcome.BLOCKED, key="k", count=10))
        >>> registry.get_sample_value("floodgate_admissions_total", {"outcome": "blocked", "scope": "local", "degraded": "false"})
        1.0
    """
    admissions = Counter(
        "admissions",
        "Admission evaluations by outcome",
        labelnames=("outcome", "scope", "degraded"),
        namespace=namespace,
        registry=registry if registry is not None else REGISTRY,
    )

    def _count(event: AdmissionEvent) -> None:
        admissions.labels(outcome=event.outcome.value, scope=event.scope.value, degraded=str(event.degraded).lower()).inc()

    def extension(handle: SubscribeHandle) -> None:
        handle.subscribe(None, _count)

    return extension
