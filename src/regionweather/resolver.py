"""Dataset value resolution for a location and timeline position.

The resolver turns ``(location, dataset, timeline)`` into a scalar. It
fetches the whole 30-day hourly series once per cache key, then indexes
into it: a single sample for single-instant mode, an inclusive average
for range mode.

Expected failures (timeouts, network errors, provider errors, missing
datasets) are returned as ``ResolutionFailure`` values and never raised,
so the caller can keep a region's last good value.

Example:
    >>> resolver = DatasetResolver(provider, SeriesCache(), Config())  # doctest: +SKIP
    >>> resolver.resolve((52.23, 21.01), DatasetKind.TEMPERATURE, TimelineState())
    7.42
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt

from regionweather._types import DatasetKind, FailureKind, HourRange, LatLon
from regionweather.cache import SeriesCache, build_cache_key
from regionweather.config import Config
from regionweather.exceptions import ProviderError
from regionweather.providers.base import CancelToken, TimeSeriesProvider
from regionweather.series import TimelineWindow, TimeSeries
from regionweather.timeline import TimelineMode, TimelineState

if TYPE_CHECKING:
    from regionweather.store import Region

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionFailure:
    """Tagged failure returned instead of a value.

    Args:
        kind: Failure category.
        detail: Diagnostic text (provider message, dataset name, ...).
        status_code: HTTP status for ``PROVIDER_ERROR`` failures.

    Example:
        >>> f = ResolutionFailure(FailureKind.PROVIDER_ERROR, status_code=503)
        >>> f.message
        'Weather provider returned an error. (HTTP 503)'
    """

    kind: FailureKind
    detail: str = ""
    status_code: int | None = None

    @property
    def message(self) -> str:
        """User-facing description of the failure."""
        if self.status_code is not None:
            return f"{self.kind.message} (HTTP {self.status_code})"
        return self.kind.message


Resolution = Union[float, ResolutionFailure]


def _round2(value: float) -> float:
    return round(float(value), 2)


def extract_instant(values: npt.NDArray[np.float64], hour: int) -> float:
    """Return the sample at *hour*, rounded to two decimals.

    The index is clamped to ``[0, len(values) - 1]``; a missing sample
    counts as zero.

    Args:
        values: Hourly samples with ``NaN`` for missing hours. Must not
            be empty.
        hour: Requested hour offset.

    Example:
        >>> extract_instant(np.array([1.234, 5.678]), 99)
        5.68
    """
    index = max(0, min(int(hour), len(values) - 1))
    sample = float(values[index])
    if math.isnan(sample):
        return 0.0
    return _round2(sample)


def extract_range_average(
    values: npt.NDArray[np.float64],
    hour_range: HourRange,
) -> float:
    """Return the mean of the inclusive slice ``[start, end]``.

    ``end`` is clamped to the last sample and ``start`` to zero. Missing
    samples count as zero. An empty effective slice returns ``0.0``.

    Example:
        >>> extract_range_average(np.array([1.0, 2.0, np.nan, 5.0]), (0, 3))
        2.0
        >>> extract_range_average(np.array([1.0, 2.0]), (5, 9))
        0.0
    """
    start, end = hour_range
    start = max(0, int(start))
    end = min(int(end), len(values) - 1)
    if start > end:
        return 0.0
    window = np.nan_to_num(values[start : end + 1], nan=0.0)
    if window.size == 0:
        return 0.0
    return _round2(float(window.mean()))


class DatasetResolver:
    """Resolves dataset values against a cached provider time series.

    Args:
        provider: Source of hourly series.
        cache: Cache service shared across resolutions.
        config: Frozen configuration snapshot.
        clock: Returns the current UTC time; the request window is
            derived from it on every call.
    """

    def __init__(
        self,
        provider: TimeSeriesProvider,
        cache: SeriesCache,
        config: Config,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._token_lock = threading.Lock()
        self._active_token: CancelToken | None = None

    @property
    def cache(self) -> SeriesCache:
        """The injected cache service."""
        return self._cache

    def current_window(self) -> TimelineWindow:
        """Return the request window for the current clock time."""
        return TimelineWindow.around(self._clock())

    def fetch_series(
        self,
        location: LatLon,
        datasets: Sequence[DatasetKind],
    ) -> TimeSeries | ResolutionFailure:
        """Return the cached or freshly fetched series for *location*.

        On a cache miss exactly one provider request is made; a
        successful response is cached before it is returned.
        """
        window = self.current_window()
        key = build_cache_key(
            location, datasets, window, self._config.coordinate_precision
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        token = CancelToken()
        with self._token_lock:
            self._active_token = token
        try:
            series = self._provider.fetch(location, datasets, window, token)
        except ProviderError as exc:
            logger.warning(
                "Fetch failed for (%.4f, %.4f): %s",
                location[0],
                location[1],
                exc.what,
            )
            return ResolutionFailure(
                kind=exc.kind,
                detail=str(exc),
                status_code=exc.status_code,
            )
        finally:
            with self._token_lock:
                if self._active_token is token:
                    self._active_token = None

        return self._cache.store(key, series)

    def resolve(
        self,
        location: LatLon,
        dataset: DatasetKind,
        timeline: TimelineState,
    ) -> Resolution:
        """Resolve *dataset* at *location* for the timeline position.

        Args:
            location: ``(lat, lon)``, usually a region centroid.
            dataset: Dataset kind to read.
            timeline: Position and mode to resolve for.

        Returns:
            The value rounded to two decimals, or a ``ResolutionFailure``.
        """
        series = self.fetch_series(location, [dataset])
        if isinstance(series, ResolutionFailure):
            return series

        values = series.values_for(dataset)
        if values is None or values.size == 0:
            logger.warning("Dataset %r missing from provider response", dataset.value)
            return ResolutionFailure(
                kind=FailureKind.DATASET_UNAVAILABLE,
                detail=f'Dataset "{dataset.value}" not available',
            )

        if timeline.mode is TimelineMode.SINGLE:
            return extract_instant(values, timeline.selected_time)
        return extract_range_average(values, timeline.selected_range)

    def resolve_region(self, region: Region, timeline: TimelineState) -> Resolution:
        """Resolve a region's bound dataset at its centroid."""
        return self.resolve(region.centroid, region.dataset, timeline)

    def cancel(self) -> bool:
        """Abort the in-flight fetch, if any.

        The aborted call resolves as a ``TIMED_OUT`` failure.

        Returns:
            ``True`` if a fetch was in flight.
        """
        with self._token_lock:
            token = self._active_token
        if token is None:
            return False
        token.cancel()
        logger.info("In-flight fetch cancelled")
        return True

    def clear_cache(self) -> None:
        """Drop every cached series."""
        self._cache.clear()
