# -*- coding: utf-8 -*-
"""Location: ./floodgate/extensions/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Built-in extensions.
Each factory returns an extension callable to pass in ``extensions=``:
- logging_extension: one log line per admission outcome
- prometheus_extension: admission counters for Prometheus
"""

# First-Party
from floodgate.extensions.logging_observer import logging_extension
from floodgate.extensions.prometheus import prometheus_extension

__all__ = ["logging_extension", "prometheus_extension"]
