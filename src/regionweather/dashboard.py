"""Composition root wiring the dashboard components together.

``Dashboard`` owns one instance of each service and connects them:

* the ``SyncOrchestrator`` watches the store and resolves regions;
* the ``OverlayReconciler`` watches the store and redraws overlays;
* the ``PlaybackDriver`` moves the timeline forward on a timer.

Example:
    >>> from regionweather import Dashboard
    >>> with Dashboard() as dash:  # doctest: +SKIP
    ...     region = dash.draw_region([(22.5, 88.3), (22.6, 88.3), (22.6, 88.4)])
    ...     dash.refresh()
    ...     print(dash.to_dataframe()[["name", "formatted_value", "color"]])
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from regionweather import geometry
from regionweather._types import DatasetKind, LatLon, format_dataset_value
from regionweather.cache import SeriesCache
from regionweather.classifier import ColorRule, fill_color
from regionweather.config import Config, get_default_config, resolve_state_path
from regionweather.exceptions import RegionValidationError
from regionweather.orchestrator import CycleReport, SyncOrchestrator
from regionweather.persistence import load_state, save_state
from regionweather.providers import get_provider
from regionweather.providers.base import TimeSeriesProvider
from regionweather.reconciler import OverlayReconciler
from regionweather.rendering.base import GeoJSON, RenderingSurface
from regionweather.rendering.memory import InMemorySurface
from regionweather.resolver import DatasetResolver
from regionweather.store import Region, RegionStore
from regionweather.timeline import PlaybackDriver

if TYPE_CHECKING:
    import pandas as pd

logger = logging.getLogger(__name__)


class Dashboard:
    """A region weather dashboard.

    Args:
        config: Configuration snapshot; the module default when omitted.
        provider: Time-series provider; built from
            ``config.provider_name`` when omitted.
        surface: Rendering surface; an ``InMemorySurface`` when omitted.
        sleep: Pause function used between regions in a cycle.
        clock: UTC clock used to place the 30-day window.
    """

    def __init__(
        self,
        config: Config | None = None,
        provider: TimeSeriesProvider | None = None,
        surface: RenderingSurface | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or get_default_config()
        self._cache = SeriesCache()
        self._provider = provider or get_provider(
            self._config.provider_name, self._config
        )
        self._resolver = DatasetResolver(
            self._provider, self._cache, self._config, clock=clock
        )
        self._store = RegionStore()
        self._surface = surface or InMemorySurface()
        self._reconciler = OverlayReconciler(
            self._surface, fill_opacity=self._config.fill_opacity
        )
        self._orchestrator = SyncOrchestrator(
            self._store, self._resolver, self._config, sleep=sleep
        )
        self._playback = PlaybackDriver(
            self._store, step_seconds=self._config.playback_step_seconds
        )

        self._reconciler.attach(self._store)
        self._orchestrator.start()
        self._surface.on_ready(lambda: self._store.set_surface_ready(True))
        logger.debug("Dashboard ready (provider=%s)", self._provider.name)

    def __enter__(self) -> Dashboard:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        count = len(self._store.snapshot().regions)
        return f"Dashboard(provider={self._provider.name!r}, regions={count})"

    # ── Components ────────────────────────────────────────────────

    @property
    def config(self) -> Config:
        return self._config

    @property
    def store(self) -> RegionStore:
        return self._store

    @property
    def cache(self) -> SeriesCache:
        return self._cache

    @property
    def resolver(self) -> DatasetResolver:
        return self._resolver

    @property
    def surface(self) -> RenderingSurface:
        return self._surface

    @property
    def reconciler(self) -> OverlayReconciler:
        return self._reconciler

    @property
    def orchestrator(self) -> SyncOrchestrator:
        return self._orchestrator

    @property
    def playback(self) -> PlaybackDriver:
        return self._playback

    @property
    def regions(self) -> tuple[Region, ...]:
        """Current regions in drawing order."""
        return self._store.snapshot().regions

    # ── Regions ───────────────────────────────────────────────────

    def draw_region(
        self,
        points: Sequence[LatLon],
        dataset: DatasetKind | str = DatasetKind.TEMPERATURE,
        name: str | None = None,
        color_rules: Iterable[ColorRule] | None = None,
    ) -> Region:
        """Add a region from ``(lat, lon)`` vertices.

        Raises:
            RegionValidationError: If the polygon or rules are invalid.
        """
        return self._store.draw_region(
            points, dataset=dataset, name=name, color_rules=color_rules
        )

    def draw_geojson(
        self,
        shape: GeoJSON,
        dataset: DatasetKind | str = DatasetKind.TEMPERATURE,
        name: str | None = None,
    ) -> Region:
        """Add a region from a drawing tool's GeoJSON Polygon or Feature.

        Raises:
            RegionValidationError: If the shape is not a polygon or its
                outer ring is invalid.
        """
        geom = shape.get("geometry") if shape.get("type") == "Feature" else shape
        geom_type = geom.get("type") if geom else None
        if geom_type != "Polygon" or not geom.get("coordinates"):
            raise RegionValidationError(
                what="Cannot create region",
                cause=f"Unsupported geometry type {geom_type!r}",
                fix="Draw a single polygon",
            )
        points = geometry.points_from_ring(geom["coordinates"][0])
        return self.draw_region(points, dataset=dataset, name=name)

    def delete_region(self, region_id: str) -> bool:
        return self._store.delete_region(region_id)

    # ── Resolution ────────────────────────────────────────────────

    def refresh(self) -> CycleReport | None:
        """Run one resolution cycle now and return its report."""
        return self._orchestrator.run_now()

    def clear_cache(self) -> None:
        """Forget all cached series; the next cycle refetches."""
        self._resolver.clear_cache()

    # ── Export and persistence ────────────────────────────────────

    def to_dataframe(self) -> pd.DataFrame:
        """Export one row per region.

        Columns: ``id``, ``name``, ``dataset``, ``unit``, ``value``,
        ``formatted_value``, ``color``, ``area_km2``, ``centroid_lat``,
        ``centroid_lon``.
        """
        import pandas as pd

        rows: list[dict[str, Any]] = []
        for region in self.regions:
            lat, lon = region.centroid
            rows.append(
                {
                    "id": region.id,
                    "name": region.name,
                    "dataset": region.dataset.value,
                    "unit": region.unit,
                    "value": region.current_value,
                    "formatted_value": format_dataset_value(
                        region.current_value, region.dataset
                    ),
                    "color": fill_color(region),
                    "area_km2": region.area,
                    "centroid_lat": lat,
                    "centroid_lon": lon,
                }
            )
        columns = [
            "id",
            "name",
            "dataset",
            "unit",
            "value",
            "formatted_value",
            "color",
            "area_km2",
            "centroid_lat",
            "centroid_lon",
        ]
        return pd.DataFrame(rows, columns=columns)

    def save(self, path: str | Path | None = None) -> Path:
        """Persist regions, viewport, and cached series."""
        target = path or resolve_state_path(self._config)
        return save_state(target, self._store, self._cache)

    def load(self, path: str | Path | None = None) -> bool:
        """Restore state saved by ``save()``; returns ``False`` if none exists."""
        target = path or resolve_state_path(self._config)
        return load_state(target, self._store, self._cache)

    def close(self) -> None:
        """Stop timers, cancel an in-flight fetch, and unsubscribe.

        Returns once a cycle running on a timer thread has finished, so
        nothing writes to the store afterwards.
        """
        self._playback.stop()
        self._orchestrator.stop()
        self._resolver.cancel()
        if not self._orchestrator.wait_idle(self._config.request_timeout):
            logger.warning("Resolution cycle still running after close()")
        self._reconciler.detach()
        logger.debug("Dashboard closed")
