"""RegionWeather: weather values and colour-coded overlays for drawn regions.

Example:
    >>> import regionweather as rw
    >>>
    >>> # Draw a region and resolve its current temperature
    >>> dash = rw.Dashboard()
    >>> region = dash.draw_region([(22.5, 88.3), (22.6, 88.3), (22.6, 88.4)])
    >>> dash.refresh()
    >>> print(dash.to_dataframe()[["name", "formatted_value", "color"]])
    >>>
    >>> # Or classify a value directly
    >>> rw.classify(25.0, rw.default_color_rules())
    '#10B981'
"""

from regionweather.__about__ import __version__
from regionweather._types import DatasetKind, FailureKind, format_dataset_value
from regionweather.cache import SeriesCache
from regionweather.classifier import ColorRule, classify, default_color_rules
from regionweather.config import Config, configure, get_default_config
from regionweather.dashboard import Dashboard
from regionweather.exceptions import (
    ConfigurationError,
    PersistenceError,
    ProviderError,
    RegionValidationError,
    RegionWeatherError,
    RenderingError,
)
from regionweather.geometry import area, centroid
from regionweather.persistence import load_state, save_state
from regionweather.resolver import DatasetResolver, ResolutionFailure
from regionweather.store import DashboardState, MapViewport, Region, RegionStore
from regionweather.timeline import TimelineMode, TimelineState

__all__ = [
    # Version
    "__version__",
    # Dashboard
    "Dashboard",
    # Data model
    "DatasetKind",
    "DashboardState",
    "MapViewport",
    "Region",
    "RegionStore",
    "TimelineMode",
    "TimelineState",
    # Core algorithms
    "ColorRule",
    "area",
    "centroid",
    "classify",
    "default_color_rules",
    "format_dataset_value",
    # Resolution
    "DatasetResolver",
    "FailureKind",
    "ResolutionFailure",
    "SeriesCache",
    # Persistence
    "load_state",
    "save_state",
    # Configuration
    "Config",
    "configure",
    "get_default_config",
    # Exceptions
    "ConfigurationError",
    "PersistenceError",
    "ProviderError",
    "RegionValidationError",
    "RegionWeatherError",
    "RenderingError",
]
