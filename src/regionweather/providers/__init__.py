"""Provider registry for hourly weather sources.

Provides ``get_provider()`` to instantiate configured provider instances
by name. Currently supports Open-Meteo.
"""

from __future__ import annotations

from regionweather.config import Config
from regionweather.exceptions import ConfigurationError
from regionweather.providers.base import TimeSeriesProvider

_PROVIDER_REGISTRY: dict[str, type[TimeSeriesProvider]] = {}
_REGISTRY_INITIALIZED = False


def _init_registry() -> None:
    """Populate the provider registry on first use (lazy import)."""
    global _REGISTRY_INITIALIZED  # noqa: PLW0603
    if _REGISTRY_INITIALIZED:
        return

    from regionweather.providers.open_meteo import OpenMeteoProvider

    _PROVIDER_REGISTRY.update({"open-meteo": OpenMeteoProvider})
    _REGISTRY_INITIALIZED = True


def get_registered_names() -> list[str]:
    """Return sorted list of registered provider names."""
    _init_registry()
    return sorted(_PROVIDER_REGISTRY)


def get_provider(name: str, config: Config) -> TimeSeriesProvider:
    """Return a configured provider instance by name.

    Provider names are case-insensitive.

    Args:
        name: Provider identifier (``"open-meteo"``).
        config: Frozen configuration snapshot.

    Returns:
        A configured ``TimeSeriesProvider`` ready for use.

    Raises:
        ConfigurationError: If *name* does not match a registered provider.

    Example:
        >>> from regionweather.config import Config
        >>> get_provider("open-meteo", Config()).name
        'open-meteo'
    """
    _init_registry()
    key = name.lower()
    if key not in _PROVIDER_REGISTRY:
        valid = ", ".join(sorted(_PROVIDER_REGISTRY))
        raise ConfigurationError(
            what=f"Unknown provider: {name!r}",
            cause=f"Valid providers are: {valid}",
            fix=f"Use one of: {valid}",
        )
    return _PROVIDER_REGISTRY[key](config=config)
