"""End-to-end tests for the Dashboard composition root."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from regionweather import Dashboard
from regionweather._types import DatasetKind, FailureKind
from regionweather.classifier import NO_DATA_COLOR
from regionweather.config import Config
from regionweather.exceptions import ProviderError, RegionValidationError
from regionweather.providers.base import CancelToken
from regionweather.reconciler import fill_layer_id, source_id
from regionweather.rendering.memory import InMemorySurface


@pytest.fixture
def dashboard(
    test_config: Config,
    fake_provider: Any,
    fixed_clock: Callable[[], datetime],
    monkeypatch: pytest.MonkeyPatch,
) -> Dashboard:
    monkeypatch.delenv("REGIONWEATHER_STATE", raising=False)
    dash = Dashboard(
        config=test_config, provider=fake_provider, clock=fixed_clock
    )
    yield dash
    dash.close()


@pytest.mark.integration
class TestEndToEnd:
    """Draw, resolve, classify, and render through one Dashboard."""

    def test_draw_creates_unresolved_overlay(
        self, dashboard: Dashboard, square: list[tuple[float, float]]
    ) -> None:
        region = dashboard.draw_region(square)
        surface = dashboard.surface
        assert isinstance(surface, InMemorySurface)
        assert surface.has_source(source_id(region.id))
        assert surface.paint(fill_layer_id(region.id), "fill-color") == (
            NO_DATA_COLOR
        )

    def test_cold_value_is_red(
        self, dashboard: Dashboard, square: list[tuple[float, float]]
    ) -> None:
        region = dashboard.draw_region(square)
        dashboard.store.set_selected_time(0)

        report = dashboard.refresh()

        assert report is not None
        assert report.resolved == {region.id: 0.0}
        assert dashboard.regions[0].current_value == 0.0
        assert dashboard.surface.paint(fill_layer_id(region.id), "fill-color") == (
            "#EF4444"
        )

    def test_warm_value_is_green(
        self, dashboard: Dashboard, square: list[tuple[float, float]]
    ) -> None:
        region = dashboard.draw_region(square)
        dashboard.refresh()
        assert dashboard.regions[0].current_value == 36.0
        label = dashboard.surface.sources[source_id(region.id)]["properties"]
        assert label["label"] == "Region 1\ntemperature: 36.0°C"
        assert dashboard.surface.paint(fill_layer_id(region.id), "fill-color") == (
            "#10B981"
        )

    def test_cached_series_reused_across_hours(
        self,
        dashboard: Dashboard,
        fake_provider: Any,
        square: list[tuple[float, float]],
    ) -> None:
        dashboard.draw_region(square)
        dashboard.refresh()
        dashboard.store.set_selected_time(100)
        dashboard.refresh()
        assert len(fake_provider.calls) == 1
        assert dashboard.regions[0].current_value == 10.0

    def test_provider_failure_sets_error(
        self,
        dashboard: Dashboard,
        fake_provider: Any,
        square: list[tuple[float, float]],
    ) -> None:
        fake_provider.error = ProviderError(
            what="boom", kind=FailureKind.NETWORK_UNAVAILABLE
        )
        dashboard.draw_region(square, name="Delta")
        report = dashboard.refresh()
        assert report is not None and not report.ok
        assert dashboard.store.snapshot().error.startswith("Delta: ")
        assert dashboard.regions[0].current_value is None

    def test_delete_removes_overlay(
        self, dashboard: Dashboard, square: list[tuple[float, float]]
    ) -> None:
        region = dashboard.draw_region(square)
        assert dashboard.delete_region(region.id) is True
        assert dashboard.surface.sources == {}
        assert dashboard.surface.layers == {}
        assert dashboard.delete_region(region.id) is False


@pytest.mark.integration
class TestDrawGeojson:
    """Verify drawing-tool output is accepted."""

    def test_feature(self, dashboard: Dashboard) -> None:
        feature = {
            "type": "Feature",
            "properties": {},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[88, 22], [89, 22], [89, 23], [88, 22]]],
            },
        }
        region = dashboard.draw_geojson(feature, dataset="wind", name="Drawn")
        assert region.points == ((22.0, 88.0), (22.0, 89.0), (23.0, 89.0))
        assert region.dataset is DatasetKind.WIND

    def test_bare_polygon(self, dashboard: Dashboard) -> None:
        polygon = {
            "type": "Polygon",
            "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
        }
        assert len(dashboard.draw_geojson(polygon).points) == 4

    @pytest.mark.parametrize(
        "shape",
        [
            {"type": "Point", "coordinates": [0, 0]},
            {"type": "Feature", "geometry": None},
            {"type": "Polygon", "coordinates": []},
        ],
        ids=["point", "no-geometry", "empty"],
    )
    def test_rejected(self, dashboard: Dashboard, shape: dict[str, Any]) -> None:
        with pytest.raises(RegionValidationError, match="Unsupported geometry"):
            dashboard.draw_geojson(shape)
        assert dashboard.regions == ()


@pytest.mark.integration
class TestExport:
    """Verify DataFrame export and persistence."""

    def test_to_dataframe(
        self, dashboard: Dashboard, square: list[tuple[float, float]]
    ) -> None:
        dashboard.draw_region(square, name="Delta")
        dashboard.refresh()
        df = dashboard.to_dataframe()
        assert list(df.columns) == [
            "id",
            "name",
            "dataset",
            "unit",
            "value",
            "formatted_value",
            "color",
            "area_km2",
            "centroid_lat",
            "centroid_lon",
        ]
        row = df.iloc[0]
        assert row["name"] == "Delta"
        assert row["formatted_value"] == "36.0°C"
        assert row["color"] == "#10B981"
        assert row["centroid_lat"] == 22.5

    def test_empty_dataframe(self, dashboard: Dashboard) -> None:
        df = dashboard.to_dataframe()
        assert df.empty
        assert "color" in df.columns

    def test_save_and_load(
        self,
        dashboard: Dashboard,
        test_config: Config,
        fake_provider: Any,
        fixed_clock: Callable[[], datetime],
        square: list[tuple[float, float]],
    ) -> None:
        dashboard.draw_region(square, name="Delta")
        dashboard.refresh()
        path = dashboard.save()
        assert path == test_config.state_path

        with Dashboard(
            config=test_config, provider=fake_provider, clock=fixed_clock
        ) as restored:
            assert restored.load() is True
            assert [r.name for r in restored.regions] == ["Delta"]
            assert restored.regions[0].current_value == 36.0
            assert len(restored.cache) == 1
            assert restored.surface.has_source(source_id(restored.regions[0].id))

    def test_load_missing(self, dashboard: Dashboard, tmp_path: Path) -> None:
        assert dashboard.load(tmp_path / "nothing.json") is False


@pytest.mark.integration
class TestLifecycle:
    """Verify surface readiness and shutdown."""

    def test_surface_ready_flag_and_catch_up(
        self,
        test_config: Config,
        fake_provider: Any,
        square: list[tuple[float, float]],
    ) -> None:
        surface = InMemorySurface(ready=False)
        with Dashboard(
            config=test_config, provider=fake_provider, surface=surface
        ) as dash:
            region = dash.draw_region(square)
            assert dash.store.snapshot().is_surface_ready is False
            assert surface.sources == {}

            surface.mark_ready()

            assert dash.store.snapshot().is_surface_ready is True
            assert surface.has_source(source_id(region.id))

    def test_close_detaches(
        self,
        test_config: Config,
        fake_provider: Any,
        square: list[tuple[float, float]],
    ) -> None:
        dash = Dashboard(config=test_config, provider=fake_provider)
        dash.close()
        dash.draw_region(square)
        assert dash.surface.sources == {}
        assert dash.orchestrator.flush() is False

    def test_repr(self, dashboard: Dashboard) -> None:
        assert repr(dashboard) == "Dashboard(provider='fake', regions=0)"

    def test_close_waits_for_running_cycle(
        self,
        test_config: Config,
        fake_provider: Any,
        fixed_clock: Callable[[], datetime],
        square: list[tuple[float, float]],
    ) -> None:
        entered = threading.Event()

        def cancellable_fetch(
            location: Any,
            datasets: Any,
            window: Any,
            cancel_token: CancelToken | None = None,
        ) -> Any:
            entered.set()
            while cancel_token is None or not cancel_token.cancelled:
                time.sleep(0.01)
            raise ProviderError(what="cancelled", kind=FailureKind.TIMED_OUT)

        fake_provider.fetch = cancellable_fetch
        dash = Dashboard(config=test_config, provider=fake_provider, clock=fixed_clock)
        dash.draw_region(square)
        dash.draw_region([(10.0, 10.0), (10.0, 11.0), (11.0, 11.0)])
        worker = threading.Thread(target=dash.refresh, daemon=True)
        worker.start()
        assert entered.wait(5.0)

        dash.close()

        assert dash.orchestrator.wait_idle(0.0) is True
        assert dash.store.snapshot().is_loading is False
        assert dash.store.snapshot().error is None
        assert [r.current_value for r in dash.regions] == [None, None]
        worker.join(5.0)
