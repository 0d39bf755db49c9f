"""Configuration management for regionweather.

A frozen ``Config`` snapshot is captured by the ``Dashboard`` at
construction time and injected into every component it owns, so later
``configure()`` calls never affect running dashboards.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)

_STATE_ENV_VAR = "REGIONWEATHER_STATE"
_DEFAULT_STATE_PATH = Path("~/.regionweather/state.json")
_DEFAULT_PROVIDER_URL = "https://api.open-meteo.com/v1/forecast"


class Config(BaseModel):
    """Dashboard configuration model.

    Args:
        provider_name: Registered time-series provider to use.
        provider_url: Base URL of the hourly forecast endpoint.
        request_timeout: Hard timeout in seconds for a single fetch.
        inter_region_delay: Pause in seconds between regions in a
            resolution cycle.
        debounce_seconds: Window in seconds in which rapid triggers are
            coalesced into one resolution cycle.
        playback_step_seconds: Interval between timeline playback steps.
        coordinate_precision: Decimal places used when rounding a
            location for cache keys.
        fill_opacity: Opacity of region fill overlays (0.0--1.0).
        state_path: JSON file used to persist regions, viewport, and
            the time-series cache.

    Example:
        >>> cfg = Config(request_timeout=5.0)
        >>> cfg.coordinate_precision
        4
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    provider_name: str = "open-meteo"
    provider_url: str = _DEFAULT_PROVIDER_URL
    request_timeout: float = 10.0
    inter_region_delay: float = 0.1
    debounce_seconds: float = 0.0
    playback_step_seconds: float = 0.1
    coordinate_precision: int = 4
    fill_opacity: float = 0.4
    state_path: Path = _DEFAULT_STATE_PATH

    @field_validator("state_path", mode="before")
    @classmethod
    def _expand_state_path(cls, v: str | Path) -> Path:
        """Expand ``~`` in the state file path."""
        return Path(v).expanduser()

    @field_validator("request_timeout", "playback_step_seconds")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        """Ensure timeouts and step intervals are positive."""
        if v <= 0:
            msg = "value must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("inter_region_delay", "debounce_seconds")
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        """Ensure delays are not negative."""
        if v < 0:
            msg = "value must not be negative"
            raise ValueError(msg)
        return v

    @field_validator("coordinate_precision")
    @classmethod
    def _validate_precision(cls, v: int) -> int:
        """Keep rounding precision within a sensible range."""
        if not 0 <= v <= 8:
            msg = "coordinate_precision must be between 0 and 8"
            raise ValueError(msg)
        return v

    @field_validator("fill_opacity")
    @classmethod
    def _validate_opacity(cls, v: float) -> float:
        """Ensure opacity is a fraction."""
        if not 0.0 <= v <= 1.0:
            msg = "fill_opacity must be between 0.0 and 1.0"
            raise ValueError(msg)
        return v

    @field_validator("provider_url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        """Require an HTTP(S) endpoint."""
        if not v.startswith(("http://", "https://")):
            msg = "provider_url must start with http:// or https://"
            raise ValueError(msg)
        return v


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Args:
        **kwargs: Any ``Config`` field (e.g. ``request_timeout``,
            ``state_path``).

    Raises:
        ValidationError: If a provided value fails pydantic validation.

    Example:
        >>> configure(request_timeout=5.0, inter_region_delay=0.0)
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    _default_config = Config(**current)


def get_default_config() -> Config:
    """Return the current module-level default configuration.

    Returns:
        The active ``Config`` instance.
    """
    return _default_config


def resolve_state_path(config: Config) -> Path:
    """Resolve the persisted-state file path.

    Resolution order:
        1. ``REGIONWEATHER_STATE`` environment variable
        2. ``config.state_path``

    Args:
        config: Active configuration.

    Returns:
        Expanded path of the state file. The file need not exist.
    """
    env_value = os.environ.get(_STATE_ENV_VAR)
    if env_value:
        path = Path(env_value).expanduser()
        logger.debug("Using state path from %s: %s", _STATE_ENV_VAR, path)
        return path
    return config.state_path
