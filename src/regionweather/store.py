"""Authoritative, observable dashboard state.

``RegionStore`` holds regions, the timeline position, the map viewport,
and transient loading/error flags. Reads go through ``snapshot()``, which
returns an immutable ``DashboardState``. Writes go through action methods;
each action is atomic and listeners are notified with ``(new, old)`` once
the change is committed.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from regionweather import geometry
from regionweather._types import DatasetKind, HourRange, LatLon
from regionweather.classifier import ColorRule, default_color_rules, validate_rule
from regionweather.exceptions import RegionValidationError
from regionweather.timeline import TimelineMode, TimelineState, clamp_hour

logger = logging.getLogger(__name__)

DEFAULT_CENTER: LatLon = (22.54111111, 88.33777778)
DEFAULT_ZOOM = 10.0


def _new_region_id() -> str:
    return uuid.uuid4().hex[:12]


class Region(BaseModel):
    """A user-drawn polygon bound to a dataset and colour rules.

    ``centroid`` and ``area`` are computed from ``points`` on access, so
    they can never disagree with the current vertices.

    Args:
        id: Stable unique identifier.
        name: Display name.
        points: 3 to 12 ``(lat, lon)`` vertices in drawing order.
        dataset: Bound dataset kind.
        color_rules: Rules used to classify ``current_value``.
        current_value: Last resolved value, ``None`` until resolved.

    Raises:
        RegionValidationError: If the points or any rule are malformed.

    Example:
        >>> r = Region(name="Field", points=[(0, 0), (0, 1), (1, 1), (1, 0)])
        >>> r.centroid
        (0.5, 0.5)
        >>> r.unit
        '°C'
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_region_id)
    name: str
    points: tuple[tuple[float, float], ...]
    dataset: DatasetKind = DatasetKind.TEMPERATURE
    color_rules: tuple[ColorRule, ...] = Field(
        default_factory=lambda: tuple(default_color_rules())
    )
    current_value: float | None = None

    @field_validator("points", mode="before")
    @classmethod
    def _validate_points(cls, v: Sequence[LatLon]) -> list[LatLon]:
        return geometry.validate_points(list(v))

    @field_validator("color_rules")
    @classmethod
    def _validate_rules(cls, v: tuple[ColorRule, ...]) -> tuple[ColorRule, ...]:
        for rule in v:
            validate_rule(rule)
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def centroid(self) -> LatLon:
        """Mean of the vertices."""
        return geometry.centroid(self.points)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def area(self) -> float:
        """Approximate area in km² (flat-earth)."""
        return geometry.area(self.points)

    @property
    def unit(self) -> str:
        """Display unit of the bound dataset."""
        return self.dataset.unit

    def replace(self, **changes: Any) -> Region:
        """Return a re-validated copy with *changes* applied.

        Unlike ``model_copy(update=...)`` this runs validation, so a
        copy with invalid points cannot be created.
        """
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return Region(**data)


@dataclass(frozen=True)
class MapViewport:
    """Map camera position."""

    center: LatLon = DEFAULT_CENTER
    zoom: float = DEFAULT_ZOOM


@dataclass(frozen=True)
class DashboardState:
    """Immutable snapshot of the whole store."""

    regions: tuple[Region, ...] = ()
    timeline: TimelineState = field(default_factory=TimelineState)
    viewport: MapViewport = field(default_factory=MapViewport)
    is_loading: bool = False
    error: str | None = None
    is_surface_ready: bool = False

    def region(self, region_id: str) -> Region | None:
        """Return the region with *region_id*, or ``None``."""
        for region in self.regions:
            if region.id == region_id:
                return region
        return None


Listener = Callable[[DashboardState, DashboardState], None]


class RegionStore:
    """Observable state container.

    Listeners run synchronously inside the commit, in subscription
    order, so they always observe fully applied state. A failing listener
    is logged and does not block the others.

    Args:
        initial: Optional starting state.

    Example:
        >>> store = RegionStore()
        >>> region = store.draw_region([(0, 0), (0, 1), (1, 1)])
        >>> store.snapshot().regions[0].name
        'Region 1'
    """

    def __init__(self, initial: DashboardState | None = None) -> None:
        self._state = initial or DashboardState()
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    # ── Reading and subscribing ───────────────────────────────────

    def snapshot(self) -> DashboardState:
        """Return the current immutable state."""
        with self._lock:
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, mutate: Callable[[DashboardState], DashboardState]) -> None:
        with self._lock:
            old = self._state
            new = mutate(old)
            if new == old:
                return
            self._state = new
            for listener in list(self._listeners):
                try:
                    listener(new, old)
                except Exception:
                    logger.exception("Store listener %r failed", listener)

    def _map_region(
        self,
        region_id: str,
        change: Callable[[Region], Region],
    ) -> None:
        def mutate(state: DashboardState) -> DashboardState:
            regions = tuple(
                change(r) if r.id == region_id else r for r in state.regions
            )
            return replace(state, regions=regions)

        self._commit(mutate)

    # ── Region actions ────────────────────────────────────────────

    def add_region(self, region: Region) -> Region:
        """Append an already constructed region.

        Raises:
            RegionValidationError: If a region with the same id exists.
        """
        with self._lock:
            if self._state.region(region.id) is not None:
                raise RegionValidationError(
                    what=f"Cannot add region {region.id}",
                    cause="A region with this id already exists",
                    fix="Use update_region() to modify it",
                )
            self._commit(lambda s: replace(s, regions=(*s.regions, region)))
        logger.debug("Added region %s (%s)", region.id, region.name)
        return region

    def draw_region(
        self,
        points: Sequence[LatLon],
        dataset: DatasetKind | str = DatasetKind.TEMPERATURE,
        name: str | None = None,
        color_rules: Iterable[ColorRule] | None = None,
    ) -> Region:
        """Create a region from a completed drawing.

        Args:
            points: Drawn vertices, ring not closed.
            dataset: Dataset kind to bind.
            name: Display name; defaults to ``"Region N"``.
            color_rules: Initial rules; defaults to the standard set.

        Returns:
            The stored region.

        Raises:
            RegionValidationError: If the polygon or rules are invalid.
        """
        with self._lock:
            region = Region(
                name=name or f"Region {len(self._state.regions) + 1}",
                points=points,
                dataset=DatasetKind(dataset),
                color_rules=tuple(
                    default_color_rules() if color_rules is None else color_rules
                ),
            )
            return self.add_region(region)

    def update_region(self, region_id: str, **changes: Any) -> Region:
        """Apply field changes to one region.

        Raises:
            RegionValidationError: If the region does not exist or the
                changes are invalid.
        """
        with self._lock:
            current = self._require(region_id)
            updated = current.replace(**changes)
            self._map_region(region_id, lambda _r: updated)
            return updated

    def rename_region(self, region_id: str, name: str) -> Region:
        """Change a region's display name."""
        return self.update_region(region_id, name=name)

    def set_dataset(self, region_id: str, dataset: DatasetKind | str) -> Region:
        """Rebind a region to another dataset, invalidating its value."""
        return self.update_region(
            region_id, dataset=DatasetKind(dataset), current_value=None
        )

    def set_color_rules(self, region_id: str, rules: Iterable[ColorRule]) -> Region:
        """Replace a region's colour rules after validating each one."""
        return self.update_region(region_id, color_rules=tuple(rules))

    def set_region_value(
        self,
        region_id: str,
        value: float | None,
        dataset: DatasetKind | None = None,
    ) -> bool:
        """Record a resolved value.

        Args:
            region_id: Region to update.
            value: Resolved value, or ``None`` to clear it.
            dataset: Dataset the value was resolved for. When given and
                the region has since been rebound, nothing is written.

        Returns:
            ``False`` if the region no longer exists or was rebound.
        """
        with self._lock:
            current = self._state.region(region_id)
            if current is None:
                return False
            if dataset is not None and current.dataset is not dataset:
                return False
            self._map_region(
                region_id, lambda r: r.model_copy(update={"current_value": value})
            )
            return True

    def delete_region(self, region_id: str) -> bool:
        """Remove a region; returns ``False`` if it did not exist."""
        with self._lock:
            if self._state.region(region_id) is None:
                return False
            self._commit(
                lambda s: replace(
                    s, regions=tuple(r for r in s.regions if r.id != region_id)
                )
            )
        logger.debug("Deleted region %s", region_id)
        return True

    def _require(self, region_id: str) -> Region:
        region = self._state.region(region_id)
        if region is None:
            raise RegionValidationError(
                what=f"Unknown region {region_id!r}",
                cause="No region with this id is stored",
                fix="Check the id against snapshot().regions",
            )
        return region

    # ── Timeline actions ──────────────────────────────────────────

    def _update_timeline(self, **changes: Any) -> None:
        self._commit(
            lambda s: replace(
                s,
                timeline=TimelineState(**{**s.timeline.model_dump(), **changes}),
            )
        )

    def set_timeline_mode(self, mode: TimelineMode | str) -> None:
        """Switch between single-instant and range resolution."""
        self._update_timeline(mode=TimelineMode(mode))

    def set_selected_time(self, hour: int) -> None:
        """Select an instant; out-of-window offsets are clamped."""
        self._update_timeline(selected_time=clamp_hour(hour))

    def set_selected_range(self, hour_range: HourRange) -> None:
        """Select a range; bounds are clamped and ordered."""
        start, end = hour_range
        self._update_timeline(selected_range=(clamp_hour(start), clamp_hour(end)))

    def set_playing(self, playing: bool) -> None:
        """Set the playback flag."""
        self._update_timeline(is_playing=playing)

    def reset_timeline(self) -> None:
        """Restore the default timeline position and stop playback."""
        self._commit(lambda s: replace(s, timeline=TimelineState()))

    # ── Viewport and status actions ───────────────────────────────

    def set_viewport(self, center: LatLon, zoom: float | None = None) -> None:
        """Move the map camera."""
        self._commit(
            lambda s: replace(
                s,
                viewport=MapViewport(
                    center=(float(center[0]), float(center[1])),
                    zoom=s.viewport.zoom if zoom is None else float(zoom),
                ),
            )
        )

    def set_loading(self, loading: bool) -> None:
        """Set the loading flag shown while a resolution cycle runs."""
        self._commit(lambda s: replace(s, is_loading=loading))

    def set_error(self, error: str | None) -> None:
        """Set or clear the transient user-facing error."""
        self._commit(lambda s: replace(s, error=error))

    def set_surface_ready(self, ready: bool = True) -> None:
        """Record whether the rendering surface accepts overlays."""
        self._commit(lambda s: replace(s, is_surface_ready=ready))

    def restore(self, regions: Iterable[Region], viewport: MapViewport) -> None:
        """Replace regions and viewport in one commit, e.g. after loading."""
        restored = tuple(regions)
        ids = [r.id for r in restored]
        if len(set(ids)) != len(ids):
            raise RegionValidationError(
                what="Cannot restore regions",
                cause="Region ids are not unique",
                fix="Remove duplicate regions from the saved state",
            )
        self._commit(lambda s: replace(s, regions=restored, viewport=viewport))

    def reset(self) -> None:
        """Return to the initial empty state."""
        self._commit(lambda s: DashboardState(is_surface_ready=s.is_surface_ready))
