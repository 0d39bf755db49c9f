"""Shared test fixtures for the regionweather test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import pytest

from regionweather._types import DatasetKind, LatLon
from regionweather.config import Config
from regionweather.exceptions import ProviderError
from regionweather.providers.base import (
    CancelToken,
    ProviderStatus,
    TimeSeriesProvider,
)
from regionweather.series import TimelineWindow, TimeSeries

FIXED_NOW = datetime(2024, 6, 16, 12, 0, tzinfo=timezone.utc)
SERIES_HOURS = 744  # 31 calendar days


def make_series(
    datasets: Sequence[DatasetKind] = (DatasetKind.TEMPERATURE,),
    hours: int = SERIES_HOURS,
    value: Callable[[int], float | None] = lambda i: i / 10,
    location: LatLon = (22.54, 88.34),
) -> TimeSeries:
    """Build a TimeSeries whose sample at hour ``i`` is ``value(i)``."""
    hourly: dict[str, Any] = {
        "time": [f"2024-06-01T{i % 24:02d}:00" for i in range(hours)],
    }
    for kind in datasets:
        hourly[kind.provider_field] = [value(i) for i in range(hours)]
    return TimeSeries.model_validate(
        {"latitude": location[0], "longitude": location[1], "hourly": hourly}
    )


class FakeProvider(TimeSeriesProvider):
    """In-memory provider recording every fetch."""

    _name = "fake"

    def __init__(self, config: Config | None = None) -> None:
        super().__init__(config or Config())
        self.calls: list[tuple[LatLon, tuple[DatasetKind, ...], TimelineWindow]] = []
        self.error: ProviderError | None = None
        self.series_factory: Callable[[Sequence[DatasetKind]], TimeSeries] = (
            lambda datasets: make_series(datasets)
        )

    def fetch(
        self,
        location: LatLon,
        datasets: Sequence[DatasetKind],
        window: TimelineWindow,
        cancel_token: CancelToken | None = None,
    ) -> TimeSeries:
        self.calls.append((location, tuple(datasets), window))
        if self.error is not None:
            raise self.error
        return self.series_factory(datasets)

    def check_status(self) -> ProviderStatus:
        return ProviderStatus(available=True)


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset module-level config before each test."""
    import regionweather.config as _cfg

    monkeypatch.setattr(_cfg, "_default_config", Config())


@pytest.fixture
def test_config(tmp_path: Any) -> Config:
    """Config with no pauses and a long debounce so cycles run on flush()."""
    return Config(
        inter_region_delay=0.0,
        debounce_seconds=3600.0,
        state_path=tmp_path / "state.json",
    )


@pytest.fixture
def fake_provider(test_config: Config) -> FakeProvider:
    return FakeProvider(test_config)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def square() -> list[LatLon]:
    """A one-degree square near Kolkata."""
    return [(22.0, 88.0), (22.0, 89.0), (23.0, 89.0), (23.0, 88.0)]


@pytest.fixture
def series_factory() -> Callable[..., TimeSeries]:
    """Return ``make_series`` for tests that shape their own responses."""
    return make_series
