"""Rendering surfaces for region overlays."""

from __future__ import annotations

from regionweather.rendering.base import RenderingSurface
from regionweather.rendering.memory import InMemorySurface
from regionweather.rendering.static import StaticMapSurface

__all__ = ["InMemorySurface", "RenderingSurface", "StaticMapSurface"]
