"""Rendering surface contract consumed by the overlay reconciler.

The surface follows the source/layer model of web map libraries: a
*source* holds GeoJSON data, and *layers* (fill, line, symbol) draw a
source with paint and layout properties. Mutations are only accepted
once the surface reports it is ready.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

GeoJSON = dict[str, Any]
LayerSpec = dict[str, Any]
"""Layer definition: ``id``, ``type``, ``source``, ``paint``, ``layout``."""


class RenderingSurface(ABC):
    """Abstract stateful map surface.

    Implementations raise ``RenderingError`` (or any exception) when a
    mutation fails; the reconciler logs and skips the affected region.
    """

    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the surface accepts mutations."""
        ...

    @abstractmethod
    def on_ready(self, callback: Callable[[], None]) -> None:
        """Register *callback* to run once when the surface becomes ready.

        If the surface is already ready the callback runs immediately.
        """
        ...

    @abstractmethod
    def has_source(self, source_id: str) -> bool:
        """Whether a source with *source_id* exists."""
        ...

    @abstractmethod
    def add_source(self, source_id: str, data: GeoJSON) -> None:
        """Create a GeoJSON source."""
        ...

    @abstractmethod
    def set_source_data(self, source_id: str, data: GeoJSON) -> None:
        """Replace the data of an existing source."""
        ...

    @abstractmethod
    def remove_source(self, source_id: str) -> None:
        """Delete a source; its layers must be removed first."""
        ...

    @abstractmethod
    def add_layer(self, layer: LayerSpec) -> None:
        """Create a layer drawing an existing source."""
        ...

    @abstractmethod
    def has_layer(self, layer_id: str) -> bool:
        """Whether a layer with *layer_id* exists."""
        ...

    @abstractmethod
    def remove_layer(self, layer_id: str) -> None:
        """Delete a layer."""
        ...

    @abstractmethod
    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        """Set one paint property (e.g. ``fill-color``) on a layer."""
        ...
