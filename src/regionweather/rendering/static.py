"""Static PNG rendering of region overlays with matplotlib."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from regionweather.rendering.memory import InMemorySurface

logger = logging.getLogger(__name__)

_DEFAULT_EDGE_COLOR = "#1E40AF"


def _resolve_text(expression: Any, properties: dict[str, Any]) -> str:
    """Evaluate the small subset of style expressions labels use.

    Supports literal strings and ``["get", name]``.
    """
    if isinstance(expression, str):
        return expression
    if (
        isinstance(expression, list)
        and len(expression) == 2
        and expression[0] == "get"
    ):
        value = properties.get(expression[1])
        return "" if value is None else str(value)
    return ""


class StaticMapSurface(InMemorySurface):
    """In-memory surface that can draw its overlays to a PNG file.

    Fill layers are drawn as polygons in lon/lat space with their
    ``fill-color`` and ``fill-opacity``; line layers set the outline;
    symbol layers place their ``text-field`` at the ring's mean position.

    Example:
        >>> surface = StaticMapSurface()
        >>> surface.to_png("regions.png")  # doctest: +SKIP
        PosixPath('regions.png')
    """

    def _feature(self, source_id: str) -> dict[str, Any] | None:
        data = self.sources.get(source_id)
        if not data:
            return None
        if data.get("type") == "Feature":
            return data
        features = data.get("features") or []
        return features[0] if features else None

    def to_png(self, path: str | Path, title: str | None = None) -> Path:
        """Export all overlays to a PNG image.

        Args:
            path: Output file path.
            title: Optional figure title.

        Returns:
            Path object pointing to the written file.
        """
        import matplotlib

        matplotlib.use("Agg")  # Non-interactive backend for file output
        import matplotlib.pyplot as plt
        from matplotlib.patches import Polygon as PolygonPatch

        path = Path(path)
        fig, ax = plt.subplots(figsize=(10, 8))

        outline: dict[str, tuple[str, float]] = {}
        for layer in self.layers.values():
            if layer.get("type") == "line":
                paint = layer.get("paint", {})
                outline[layer["source"]] = (
                    paint.get("line-color", _DEFAULT_EDGE_COLOR),
                    float(paint.get("line-width", 1)),
                )

        drawn = 0
        for layer in self.layers.values():
            feature = self._feature(layer["source"])
            if feature is None:
                continue
            ring = feature["geometry"]["coordinates"][0]
            if layer.get("type") == "fill":
                paint = layer.get("paint", {})
                edge_color, edge_width = outline.get(
                    layer["source"], (_DEFAULT_EDGE_COLOR, 1.0)
                )
                patch = PolygonPatch(
                    ring,
                    closed=True,
                    facecolor=paint.get("fill-color", "#94A3B8"),
                    alpha=float(paint.get("fill-opacity", 0.4)),
                    edgecolor=edge_color,
                    linewidth=edge_width,
                )
                ax.add_patch(patch)
                drawn += 1
            elif layer.get("type") == "symbol":
                text = _resolve_text(
                    layer.get("layout", {}).get("text-field"),
                    feature.get("properties", {}),
                )
                vertices = ring[:-1] or ring
                lon = sum(p[0] for p in vertices) / len(vertices)
                lat = sum(p[1] for p in vertices) / len(vertices)
                ax.text(
                    lon,
                    lat,
                    text,
                    ha="center",
                    va="center",
                    fontsize=9,
                    color=layer.get("paint", {}).get("text-color", "#111827"),
                )

        if drawn:
            ax.autoscale_view()
        else:
            ax.text(
                0.5,
                0.5,
                "No regions",
                ha="center",
                va="center",
                transform=ax.transAxes,
                fontsize=14,
                color="gray",
            )

        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        ax.set_aspect("equal", adjustable="datalim")
        if title:
            ax.set_title(title)

        plt.tight_layout()
        plt.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        logger.info("Wrote %d region overlays to %s", drawn, path)
        return path
