# -*- coding: utf-8 -*-
"""Location: ./floodgate/errors.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Floodgate exceptions.

A blocked request is a normal admission result and never raises. The
exceptions below cover the cases that are not: a store backend that cannot
be reached, and options that can never produce a working engine.

Examples:
    >>> issubclass(StoreError, FloodgateError)
    True
    >>> issubclass(ConfigurationError, ValueError)
    True
"""


class FloodgateError(Exception):
    """Base class for all floodgate errors."""


class StoreError(FloodgateError):
    """A counter store backend failed to read or write.

    Attributes:
        key: The store key involved in the failed operation, if known.

    Examples:
        >>> err = StoreError("connection refused", key="abc")
        >>> err.key
        'abc'
        >>> str(err)
        'connection refused'
    """

    def __init__(self, message: str, key: str | None = None):
        """Initialize the store error.

        Args:
            message: Human readable description of the failure.
            key: The store key involved in the failed operation.
        """
        super().__init__(message)
        self.key = key


class ConfigurationError(FloodgateError, ValueError):
    """Options rejected at construction time."""
