"""Tests for the provider registry get_provider() function."""

from __future__ import annotations

import pytest

from regionweather.config import Config
from regionweather.exceptions import ConfigurationError
from regionweather.providers import get_provider, get_registered_names
from regionweather.providers.base import TimeSeriesProvider
from regionweather.providers.open_meteo import OpenMeteoProvider


@pytest.fixture(autouse=True)
def _reset_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset provider registry before each test."""
    import regionweather.providers as _prov

    monkeypatch.setattr(_prov, "_REGISTRY_INITIALIZED", False)
    monkeypatch.setattr(_prov, "_PROVIDER_REGISTRY", {})


# ── Registry returns correct provider types ─────────────────────────


@pytest.mark.unit
class TestRegistryReturns:
    """Verify get_provider() returns correct provider instances."""

    def test_open_meteo_returns_open_meteo_provider(self) -> None:
        provider = get_provider("open-meteo", Config())
        assert isinstance(provider, OpenMeteoProvider)
        assert isinstance(provider, TimeSeriesProvider)

    def test_case_insensitive(self) -> None:
        assert isinstance(get_provider("Open-Meteo", Config()), OpenMeteoProvider)

    def test_config_is_passed(self) -> None:
        cfg = Config(request_timeout=3.0)
        provider = get_provider("open-meteo", cfg)
        assert provider._config is cfg

    def test_registered_names(self) -> None:
        assert get_registered_names() == ["open-meteo"]


# ── Unknown names ───────────────────────────────────────────────────


@pytest.mark.unit
class TestRegistryErrors:
    """Verify unknown provider names raise ConfigurationError."""

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            get_provider("meteo", Config())

    def test_error_lists_valid_names(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            get_provider("nope", Config())
        assert "open-meteo" in exc_info.value.cause
