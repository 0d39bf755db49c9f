"""Internal shared types for cross-component data contracts.

These types define the vocabulary passed between geometry, resolver,
store, and rendering components. Only ``DatasetKind`` and
``format_dataset_value`` are re-exported from ``regionweather.__init__``.
"""

from __future__ import annotations

import math
from enum import Enum

LatLon = tuple[float, float]
"""Geographic point as ``(latitude, longitude)`` in WGS84 degrees."""

HourRange = tuple[int, int]
"""Inclusive pair of hour offsets ``(start, end)`` into the timeline window."""

WINDOW_DAYS_BACK = 15
WINDOW_DAYS_FORWARD = 15
MAX_HOUR_OFFSET = (WINDOW_DAYS_BACK + WINDOW_DAYS_FORWARD) * 24
"""Upper bound of the timeline (720 hours for the 30-day window)."""

MIN_POINTS = 3
MAX_POINTS = 12


class DatasetKind(str, Enum):
    """Weather dataset a region can be bound to.

    Example:
        >>> DatasetKind("wind").unit
        'km/h'
        >>> DatasetKind.CLOUD.provider_field
        'cloud_cover'
    """

    TEMPERATURE = "temperature"
    WIND = "wind"
    CLOUD = "cloud"
    PRECIPITATION = "precipitation"

    @property
    def unit(self) -> str:
        """Fixed display unit for the dataset."""
        return DATASET_UNITS[self]

    @property
    def provider_field(self) -> str:
        """Hourly field identifier requested from the time-series provider."""
        return PROVIDER_FIELDS[self]


DATASET_UNITS: dict[DatasetKind, str] = {
    DatasetKind.TEMPERATURE: "°C",
    DatasetKind.WIND: "km/h",
    DatasetKind.CLOUD: "%",
    DatasetKind.PRECIPITATION: "mm",
}

PROVIDER_FIELDS: dict[DatasetKind, str] = {
    DatasetKind.TEMPERATURE: "temperature_2m",
    DatasetKind.WIND: "wind_speed_10m",
    DatasetKind.CLOUD: "cloud_cover",
    DatasetKind.PRECIPITATION: "precipitation",
}


def format_dataset_value(value: float | None, dataset: DatasetKind) -> str:
    """Format a resolved value with one decimal and the dataset unit.

    Args:
        value: Resolved scalar, or ``None`` when not yet resolved.
        dataset: Dataset the value belongs to.

    Returns:
        Display string such as ``"12.3°C"`` or ``"4.0 km/h"``; ``"N/A"``
        for missing or non-finite values.

    Example:
        >>> format_dataset_value(12.345, DatasetKind.TEMPERATURE)
        '12.3°C'
        >>> format_dataset_value(3.0, DatasetKind.PRECIPITATION)
        '3.0 mm'
    """
    if value is None or not math.isfinite(value):
        return "N/A"
    unit = dataset.unit
    # Degree and percent signs attach directly to the number
    separator = "" if unit in ("°C", "%") else " "
    return f"{value:.1f}{separator}{unit}"


class FailureKind(str, Enum):
    """Why a dataset value could not be resolved.

    Shared by providers (``ProviderError.kind``) and the resolver
    (``ResolutionFailure.kind``).
    """

    TIMED_OUT = "timed_out"
    NETWORK_UNAVAILABLE = "network_unavailable"
    PROVIDER_ERROR = "provider_error"
    DATASET_UNAVAILABLE = "dataset_unavailable"
    INVALID_RESPONSE = "invalid_response"

    @property
    def message(self) -> str:
        """Short user-facing description."""
        return _FAILURE_MESSAGES[self]


_FAILURE_MESSAGES: dict[FailureKind, str] = {
    FailureKind.TIMED_OUT: "Weather request timed out. Please try again.",
    FailureKind.NETWORK_UNAVAILABLE: (
        "Network error. Please check your internet connection."
    ),
    FailureKind.PROVIDER_ERROR: "Weather provider returned an error.",
    FailureKind.DATASET_UNAVAILABLE: "Dataset not available for this location.",
    FailureKind.INVALID_RESPONSE: "Weather provider sent an unreadable response.",
}
