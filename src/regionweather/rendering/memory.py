"""Headless rendering surface that keeps sources and layers in memory."""

from __future__ import annotations

import copy
import logging
import threading
from collections import Counter
from collections.abc import Callable
from typing import Any

from regionweather.exceptions import RenderingError
from regionweather.rendering.base import GeoJSON, LayerSpec, RenderingSurface

logger = logging.getLogger(__name__)


class InMemorySurface(RenderingSurface):
    """Surface storing overlay state in dictionaries.

    Useful headless and in tests: every mutation is counted in ``calls``
    so reconciliation passes can be inspected.

    Args:
        ready: Whether the surface starts ready. Call ``mark_ready()``
            later otherwise.

    Example:
        >>> surface = InMemorySurface()
        >>> surface.add_source("s", {"type": "FeatureCollection", "features": []})
        >>> surface.calls["add_source"]
        1
    """

    def __init__(self, ready: bool = True) -> None:
        self._ready = ready
        self._lock = threading.Lock()
        self._ready_callbacks: list[Callable[[], None]] = []
        self.sources: dict[str, GeoJSON] = {}
        self.layers: dict[str, LayerSpec] = {}
        self.calls: Counter[str] = Counter()

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    def on_ready(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._ready:
                self._ready_callbacks.append(callback)
                return
        callback()

    def mark_ready(self) -> None:
        """Flip the surface to ready and run pending ready callbacks."""
        with self._lock:
            if self._ready:
                return
            self._ready = True
            callbacks = self._ready_callbacks
            self._ready_callbacks = []
        logger.debug("Surface ready; running %d callbacks", len(callbacks))
        for callback in callbacks:
            callback()

    def _require_ready(self, action: str) -> None:
        if not self._ready:
            raise RenderingError(
                what=f"Cannot {action}",
                cause="Surface is not ready",
                fix="Wait for the ready signal before mutating the surface",
            )

    def has_source(self, source_id: str) -> bool:
        return source_id in self.sources

    def add_source(self, source_id: str, data: GeoJSON) -> None:
        self._require_ready(f"add source {source_id!r}")
        if source_id in self.sources:
            raise RenderingError(
                what=f"Cannot add source {source_id!r}",
                cause="Source already exists",
                fix="Use set_source_data() to update it",
            )
        self.sources[source_id] = copy.deepcopy(data)
        self.calls["add_source"] += 1

    def set_source_data(self, source_id: str, data: GeoJSON) -> None:
        self._require_ready(f"update source {source_id!r}")
        if source_id not in self.sources:
            raise RenderingError(
                what=f"Cannot update source {source_id!r}",
                cause="Source does not exist",
                fix="Add the source first",
            )
        self.sources[source_id] = copy.deepcopy(data)
        self.calls["set_source_data"] += 1

    def remove_source(self, source_id: str) -> None:
        self._require_ready(f"remove source {source_id!r}")
        users = [
            lid for lid, layer in self.layers.items() if layer["source"] == source_id
        ]
        if users:
            raise RenderingError(
                what=f"Cannot remove source {source_id!r}",
                cause=f"Layers still use it: {', '.join(users)}",
                fix="Remove the layers first",
            )
        self.sources.pop(source_id, None)
        self.calls["remove_source"] += 1

    def add_layer(self, layer: LayerSpec) -> None:
        layer_id = layer["id"]
        self._require_ready(f"add layer {layer_id!r}")
        if layer_id in self.layers:
            raise RenderingError(
                what=f"Cannot add layer {layer_id!r}",
                cause="Layer already exists",
                fix="Remove the layer before adding it again",
            )
        if layer.get("source") not in self.sources:
            raise RenderingError(
                what=f"Cannot add layer {layer_id!r}",
                cause=f"Unknown source {layer.get('source')!r}",
                fix="Add the source before its layers",
            )
        self.layers[layer_id] = copy.deepcopy(layer)
        self.calls["add_layer"] += 1

    def has_layer(self, layer_id: str) -> bool:
        return layer_id in self.layers

    def remove_layer(self, layer_id: str) -> None:
        self._require_ready(f"remove layer {layer_id!r}")
        self.layers.pop(layer_id, None)
        self.calls["remove_layer"] += 1

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        self._require_ready(f"paint layer {layer_id!r}")
        layer = self.layers.get(layer_id)
        if layer is None:
            raise RenderingError(
                what=f"Cannot set {name} on layer {layer_id!r}",
                cause="Layer does not exist",
                fix="Add the layer first",
            )
        layer.setdefault("paint", {})[name] = value
        self.calls["set_paint_property"] += 1

    def mutation_count(self) -> int:
        """Total number of mutating calls so far."""
        return sum(self.calls.values())

    def paint(self, layer_id: str, name: str) -> Any:
        """Return a paint property, or ``None`` if unset."""
        layer = self.layers.get(layer_id)
        if layer is None:
            return None
        return layer.get("paint", {}).get(name)
