"""Reconciles the region set onto a stateful rendering surface.

Each region owns one GeoJSON source and three layers (fill, border,
label). A reconciliation pass compares the desired overlays with what it
last drew and issues only the mutations needed:

* new region: add source and layers;
* known region: replace source data if geometry or label text changed,
  set ``fill-color`` if the colour changed, nothing otherwise;
* vanished region: remove its layers, then its source.

Overlays are never recreated for an existing region. Passes requested
before the surface is ready are deferred; one catch-up pass with the
latest requested regions runs on the ready signal.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from regionweather import geometry
from regionweather._types import format_dataset_value
from regionweather.classifier import fill_color
from regionweather.rendering.base import GeoJSON, LayerSpec, RenderingSurface
from regionweather.store import DashboardState, Region, RegionStore

logger = logging.getLogger(__name__)

BORDER_COLOR = "#1E40AF"
BORDER_WIDTH = 2
LABEL_COLOR = "#111827"


def source_id(region_id: str) -> str:
    return f"region-source-{region_id}"


def fill_layer_id(region_id: str) -> str:
    return f"region-{region_id}"


def border_layer_id(region_id: str) -> str:
    return f"region-{region_id}-border"


def label_layer_id(region_id: str) -> str:
    return f"region-{region_id}-label"


def region_label(region: Region) -> str:
    """Return label text such as ``"Field\\ntemperature: 12.3°C"``."""
    value = format_dataset_value(region.current_value, region.dataset)
    return f"{region.name}\n{region.dataset.value}: {value}"


def region_feature(region: Region) -> GeoJSON:
    """Build the GeoJSON Feature drawn for *region*."""
    return {
        "type": "Feature",
        "geometry": geometry.polygon_geometry(region.points),
        "properties": {
            "id": region.id,
            "name": region.name,
            "currentValue": region.current_value,
            "datasetName": region.dataset.value,
            "datasetUnit": region.unit,
            "label": region_label(region),
        },
    }


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass.

    Args:
        created: Regions whose overlays were created.
        updated: Regions that received at least one update.
        removed: Regions whose overlays were removed.
        failed: Region id to error message for skipped regions.
        deferred: ``True`` when the surface was not ready.
    """

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    deferred: bool = False

    @property
    def mutated(self) -> bool:
        """Whether the pass changed anything on the surface."""
        return bool(self.created or self.updated or self.removed)


@dataclass
class _Drawn:
    feature: GeoJSON
    color: str


class OverlayReconciler:
    """Keeps one overlay per region in sync with the region set.

    Args:
        surface: Surface to mutate.
        fill_opacity: Opacity of region fills.

    Example:
        >>> from regionweather.rendering.memory import InMemorySurface
        >>> reconciler = OverlayReconciler(InMemorySurface())
        >>> reconciler.reconcile([]).mutated
        False
    """

    def __init__(self, surface: RenderingSurface, fill_opacity: float = 0.4) -> None:
        self._surface = surface
        self._fill_opacity = fill_opacity
        self._lock = threading.RLock()
        self._drawn: dict[str, _Drawn] = {}
        self._pending: tuple[Region, ...] | None = None
        self._waiting_for_ready = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def drawn_region_ids(self) -> list[str]:
        """Ids of regions with overlays, in creation order."""
        with self._lock:
            return list(self._drawn)

    # ── Store binding ─────────────────────────────────────────────

    def attach(self, store: RegionStore) -> None:
        """Reconcile on every committed change to the region set."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = store.subscribe(self._on_change)
        self.reconcile(store.snapshot().regions)

    def detach(self) -> None:
        """Stop following the store."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, new: DashboardState, old: DashboardState) -> None:
        if new.regions != old.regions:
            self.reconcile(new.regions)

    # ── Reconciliation ────────────────────────────────────────────

    def reconcile(self, regions: Sequence[Region]) -> ReconcileReport:
        """Bring the surface in line with *regions*.

        Returns:
            What was created, updated, removed, or skipped. When the
            surface is not ready the request is deferred and the report
            has ``deferred=True``.
        """
        with self._lock:
            if not self._surface.is_ready():
                self._defer(tuple(regions))
                return ReconcileReport(deferred=True)

            # A direct pass supersedes any deferred snapshot
            self._pending = None
            report = ReconcileReport()
            wanted = {region.id for region in regions}

            for region in regions:
                try:
                    self._reconcile_region(region, report)
                except Exception as exc:
                    logger.error("Rendering region %s failed: %s", region.id, exc)
                    report.failed[region.id] = str(exc)

            for region_id in [rid for rid in self._drawn if rid not in wanted]:
                try:
                    self._remove_region(region_id)
                    report.removed.append(region_id)
                except Exception as exc:
                    logger.error("Removing region %s failed: %s", region_id, exc)
                    report.failed[region_id] = str(exc)

        if report.mutated or report.failed:
            logger.debug(
                "Reconciled: %d created, %d updated, %d removed, %d failed",
                len(report.created),
                len(report.updated),
                len(report.removed),
                len(report.failed),
            )
        return report

    def _defer(self, regions: tuple[Region, ...]) -> None:
        self._pending = regions
        if self._waiting_for_ready:
            return
        self._waiting_for_ready = True
        logger.debug("Surface not ready; deferring reconciliation")
        self._surface.on_ready(self._catch_up)

    def _catch_up(self) -> None:
        with self._lock:
            self._waiting_for_ready = False
            if self._pending is not None:
                self.reconcile(self._pending)

    def _reconcile_region(self, region: Region, report: ReconcileReport) -> None:
        feature = region_feature(region)
        color = fill_color(region)
        sid = source_id(region.id)
        drawn = self._drawn.get(region.id)

        if drawn is None and not self._surface.has_source(sid):
            self._surface.add_source(sid, feature)
            self._drawn[region.id] = _Drawn(feature=feature, color=color)
            for layer in self._layers(region.id, color):
                self._surface.add_layer(layer)
            report.created.append(region.id)
            return

        changed = self._ensure_layers(region.id, color)
        if drawn is None or drawn.feature != feature:
            self._surface.set_source_data(sid, feature)
            changed = True
        if drawn is None or drawn.color != color:
            self._surface.set_paint_property(
                fill_layer_id(region.id), "fill-color", color
            )
            changed = True
        self._drawn[region.id] = _Drawn(feature=feature, color=color)
        if changed:
            report.updated.append(region.id)

    def _ensure_layers(self, region_id: str, color: str) -> bool:
        """Add layers lost to an earlier partial failure."""
        added = False
        for layer in self._layers(region_id, color):
            if not self._surface.has_layer(layer["id"]):
                self._surface.add_layer(layer)
                added = True
        return added

    def _remove_region(self, region_id: str) -> None:
        for layer_id in (
            label_layer_id(region_id),
            border_layer_id(region_id),
            fill_layer_id(region_id),
        ):
            if self._surface.has_layer(layer_id):
                self._surface.remove_layer(layer_id)
        sid = source_id(region_id)
        if self._surface.has_source(sid):
            self._surface.remove_source(sid)
        del self._drawn[region_id]

    def _layers(self, region_id: str, color: str) -> list[LayerSpec]:
        sid = source_id(region_id)
        label_layout: dict[str, Any] = {
            "text-field": ["get", "label"],
            "text-font": ["Open Sans Bold", "Arial Unicode MS Bold"],
            "text-size": 14,
            "text-anchor": "center",
        }
        return [
            {
                "id": fill_layer_id(region_id),
                "type": "fill",
                "source": sid,
                "paint": {"fill-color": color, "fill-opacity": self._fill_opacity},
            },
            {
                "id": border_layer_id(region_id),
                "type": "line",
                "source": sid,
                "paint": {"line-color": BORDER_COLOR, "line-width": BORDER_WIDTH},
            },
            {
                "id": label_layer_id(region_id),
                "type": "symbol",
                "source": sid,
                "layout": label_layout,
                "paint": {
                    "text-color": LABEL_COLOR,
                    "text-halo-color": "#ffffff",
                    "text-halo-width": 1,
                },
            },
        ]
