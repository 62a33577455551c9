# -*- coding: utf-8 -*-
"""Location: ./floodgate/config.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

Floodgate configuration.

Two layers:

* ``FloodgateSettings`` loads process-wide defaults from ``FLOODGATE_*``
  environment variables (or a ``.env`` file) with pydantic-settings.
* ``AdmissionConfig`` and ``GlobalConfig`` are frozen per-engine option sets.
  They start from the settings defaults, caller overrides are laid on top
  once at construction, and the result never changes afterwards.

Caller overrides may use either the snake_case field names or the camelCase
option names (``timeLimit``, ``failCallback``, ``blocksLimit``...).

Examples:
    >>> cfg = AdmissionConfig.resolve({"tries": 3, "timeLimit": 1000}, settings=FloodgateSettings())
    >>> (cfg.tries, cfg.time_limit, cfg.time_blocked, cfg.prefix)
    (3, 1000, 300000, '')
    >>> GlobalConfig.resolve({}, settings=FloodgateSettings()).prefix
    'global'
"""

# Future
from __future__ import annotations

# Standard
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional

# Third-Party
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

# First-Party
from floodgate.errors import ConfigurationError

_OPTION_ALIASES = {
    "timeLimit": "time_limit",
    "timeBlocked": "time_blocked",
    "failCallback": "fail_callback",
    "getKey": "get_key",
    "blocksLimit": "blocks_limit",
    "resetTimeOnRetry": "reset_time_on_retry",
    "storeFailurePolicy": "store_failure_policy",
}


class FailurePolicy(str, Enum):
    """What to decide when the counter store cannot be reached.

    ``open`` admits the request, ``closed`` rejects it. Either way the
    result is flagged ``degraded``.
    """

    OPEN = "open"
    CLOSED = "closed"


class FloodgateSettings(BaseSettings):
    """Environment-backed defaults for every floodgate option."""

    model_config = SettingsConfigDict(env_prefix="FLOODGATE_", env_file=".env", extra="ignore")

    # Local tier
    time_limit: int = Field(default=60_000, ge=0, description="Window in ms for non-terminal counts")
    time_blocked: int = Field(default=300_000, ge=0, description="Block duration in ms once the limit is reached")
    tries: int = Field(default=10, gt=0, description="Attempts allowed per window")
    prefix: str = ""
    store_failure_policy: FailurePolicy = FailurePolicy.OPEN

    # Global tier
    global_prefix: str = "global"
    global_blocks_limit: int = Field(default=10, gt=0)
    global_time_limit: int = Field(default=1_800_000, ge=0)
    global_time_blocked: int = Field(default=3_600_000, ge=0)
    global_reset_time_on_retry: bool = False

    # Stores
    sweep_interval: float = Field(default=60.0, gt=0, description="Seconds between memory store sweeps")
    redis_url: Optional[str] = None
    lock_timeout: float = Field(default=5.0, gt=0, description="Seconds before a Redis key lock auto-releases")


@lru_cache()
def get_settings() -> FloodgateSettings:
    """Get the cached settings instance.

    Returns:
        FloodgateSettings: loaded from the environment exactly once.

    Examples:
        >>> get_settings() is get_settings()
        True
    """
    return FloodgateSettings()


def _normalize(options: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Translate camelCase option names to field names.

    Args:
        options: Caller supplied overrides.

    Returns:
        A new dict keyed by field names.

    Examples:
        >>> _normalize({"timeLimit": 5, "tries": 2})
        {'time_limit': 5, 'tries': 2}
        >>> _normalize(None)
        {}
    """
    return {_OPTION_ALIASES.get(name, name): value for name, value in (options or {}).items()}


def _validate(model: type[BaseModel], values: dict[str, Any]) -> Any:
    """Validate options, turning pydantic errors into ConfigurationError.

    Args:
        model: The config model to build.
        values: Merged option values.

    Returns:
        The validated config.

    Raises:
        ConfigurationError: If any option is invalid.
    """
    try:
        return model.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {model.__name__} options: {exc}") from exc


class AdmissionConfig(BaseModel):
    """Resolved options for the local (per-identity) tier.

    Attributes:
        time_limit: Window in ms applied to non-terminal counts.
        time_blocked: Window in ms applied once the limit is reached.
        tries: Attempts allowed per window.
        prefix: Namespace prepended to the hashed identity.
        fail_callback: Rejection handler, or None for the default 429 response.
        get_key: Identity extraction ``(request) -> identity``, sync or async.
        store_failure_policy: Decision taken when the store raises StoreError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    time_limit: int = Field(ge=0)
    time_blocked: int = Field(ge=0)
    tries: int = Field(gt=0)
    prefix: str = ""
    fail_callback: Optional[Callable[..., Any]] = None
    get_key: Optional[Callable[..., Any]] = None
    store_failure_policy: FailurePolicy = FailurePolicy.OPEN

    @classmethod
    def resolve(cls, options: Optional[Mapping[str, Any]] = None, settings: Optional[FloodgateSettings] = None) -> "AdmissionConfig":
        """Overlay caller options on the settings defaults.

        Args:
            options: Caller overrides.
            settings: Settings to take defaults from (cached settings if None).

        Returns:
            The frozen local-tier config.

        Raises:
            ConfigurationError: If the merged options are invalid.

        Examples:
            >>> AdmissionConfig.resolve({"tries": 0}, settings=FloodgateSettings())  # doctest: +IGNORE_EXCEPTION_DETAIL
            Traceback (most recent call last):
            ...
            floodgate.errors.ConfigurationError: Invalid AdmissionConfig options
        """
        settings = settings or get_settings()
        defaults = {
            "time_limit": settings.time_limit,
            "time_blocked": settings.time_blocked,
            "tries": settings.tries,
            "prefix": settings.prefix,
            "store_failure_policy": settings.store_failure_policy,
        }
        return _validate(cls, {**defaults, **_normalize(options)})


class GlobalConfig(BaseModel):
    """Resolved options for the global (aggregate) tier.

    Attributes:
        prefix: Namespace prepended to the hashed global identity.
        blocks_limit: Distinct blocked local keys that trigger a global block.
        time_limit: Aggregate window in ms while under the limit.
        time_blocked: Aggregate window in ms once the limit is reached.
        reset_time_on_retry: Restart the aggregate expiry when a member re-registers.
        fail_callback: Rejection handler for global blocks.
        get_key: Global identity extraction ``(request) -> identity``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    prefix: str = "global"
    blocks_limit: int = Field(gt=0)
    time_limit: int = Field(ge=0)
    time_blocked: int = Field(ge=0)
    reset_time_on_retry: bool = False
    fail_callback: Optional[Callable[..., Any]] = None
    get_key: Optional[Callable[..., Any]] = None

    @classmethod
    def resolve(cls, options: Optional[Mapping[str, Any]] = None, settings: Optional[FloodgateSettings] = None) -> "GlobalConfig":
        """Overlay caller options on the settings defaults.

        Args:
            options: Caller overrides.
            settings: Settings to take defaults from (cached settings if None).

        Returns:
            The frozen global-tier config.

        Raises:
            ConfigurationError: If the merged options are invalid.
        """
        settings = settings or get_settings()
        defaults = {
            "prefix": settings.global_prefix,
            "blocks_limit": settings.global_blocks_limit,
            "time_limit": settings.global_time_limit,
            "time_blocked": settings.global_time_blocked,
            "reset_time_on_retry": settings.global_reset_time_on_retry,
        }
        return _validate(cls, {**defaults, **_normalize(options)})
