"""In-memory cache service for provider time series.

The cache is an explicitly constructed object owned by the composition
root (``Dashboard``) and injected into the resolver. It starts empty,
holds immutable ``TimeSeries`` entries keyed by rounded location, dataset
fields, and window bounds, and is emptied only by ``clear()``. Entries do
not expire.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from regionweather._types import DatasetKind, LatLon
from regionweather.series import TimelineWindow, TimeSeries

logger = logging.getLogger(__name__)


@dataclass
class CacheStatus:
    """Summary statistics for the cache.

    Args:
        entry_count: Number of cached series.
        hits: Lookups answered from the cache since creation or clear.
        misses: Lookups that found nothing.

    Example:
        >>> CacheStatus(entry_count=0, hits=0, misses=0).entry_count
        0
    """

    __slots__ = ("entry_count", "hits", "misses")

    entry_count: int
    hits: int
    misses: int


def build_cache_key(
    location: LatLon,
    datasets: Iterable[DatasetKind],
    window: TimelineWindow,
    precision: int = 4,
) -> str:
    """Build a deterministic cache key.

    Args:
        location: ``(lat, lon)`` the series was requested for.
        datasets: Requested dataset kinds; order does not matter.
        window: Request window.
        precision: Decimal places kept from each coordinate.

    Returns:
        Key ``{lat}:{lon}:{fields}:{start}:{end}``.

    Example:
        >>> from datetime import date
        >>> w = TimelineWindow(date(2024, 1, 1), date(2024, 1, 31))
        >>> build_cache_key((52.229676, 21.012229), [DatasetKind.TEMPERATURE], w)
        '52.2297:21.0122:temperature_2m:2024-01-01:2024-01-31'
    """
    lat, lon = location
    fields = ",".join(sorted({kind.provider_field for kind in datasets}))
    start, end = window.as_iso()
    return f"{lat:.{precision}f}:{lon:.{precision}f}:{fields}:{start}:{end}"


class SeriesCache:
    """Thread-safe map from cache key to ``TimeSeries``.

    Example:
        >>> cache = SeriesCache()
        >>> cache.get("missing") is None
        True
        >>> cache.status().misses
        1
    """

    def __init__(self) -> None:
        self._entries: dict[str, TimeSeries] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, cache_key: object) -> bool:
        with self._lock:
            return cache_key in self._entries

    def get(self, cache_key: str) -> TimeSeries | None:
        """Return the cached series for *cache_key*, or ``None``."""
        with self._lock:
            entry = self._entries.get(cache_key)
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
        if entry is None:
            logger.debug("Cache miss for %s", cache_key)
        else:
            logger.debug("Cache hit for %s", cache_key)
        return entry

    def store(self, cache_key: str, series: TimeSeries) -> TimeSeries:
        """Store *series* unless the key is already present.

        An existing entry is never replaced; the stored entry is returned
        either way.
        """
        with self._lock:
            existing = self._entries.get(cache_key)
            if existing is not None:
                return existing
            self._entries[cache_key] = series
        logger.debug("Cached series for %s", cache_key)
        return series

    def clear(self) -> None:
        """Remove every entry and reset counters."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cache cleared (%d entries removed)", count)

    def status(self) -> CacheStatus:
        """Return summary statistics for the cache."""
        with self._lock:
            return CacheStatus(
                entry_count=len(self._entries),
                hits=self._hits,
                misses=self._misses,
            )

    def export(self) -> dict[str, dict[str, Any]]:
        """Return all entries as JSON-compatible dictionaries."""
        with self._lock:
            items = list(self._entries.items())
        return {key: series.model_dump(mode="json") for key, series in items}

    def load(self, entries: dict[str, Any]) -> int:
        """Add entries previously produced by ``export()``.

        Entries that fail schema validation are skipped with a warning.
        Keys already present are left untouched.

        Returns:
            Number of entries added.
        """
        added = 0
        for key, payload in entries.items():
            try:
                series = TimeSeries.model_validate(payload)
            except ValidationError as exc:
                logger.warning("Skipping invalid cached series %s: %s", key, exc)
                continue
            with self._lock:
                if key in self._entries:
                    continue
                self._entries[key] = series
            added += 1
        return added
