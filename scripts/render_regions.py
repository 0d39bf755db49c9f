#!/usr/bin/env python3
"""Resolve weather values for regions and render them to a PNG map.

Regions come from a GeoJSON file (Polygon features, optional ``name`` and
``dataset`` properties), from ``--polygon`` arguments, or from a saved
dashboard state file.

Usage:
    python render_regions.py --polygon "22.5,88.3;22.6,88.3;22.6,88.4" -o map.png

Example:
    python render_regions.py --geojson fields.geojson --dataset wind --hour 400
    python render_regions.py --state ~/.regionweather/state.json --range 300 420
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Check imports before running
try:
    import regionweather as rw
except ImportError:
    print("Error: regionweather not installed. Run: pip install regionweather")
    sys.exit(1)

from regionweather.rendering import StaticMapSurface


def parse_polygon(text: str) -> list[tuple[float, float]]:
    """Parse ``"lat,lon;lat,lon;..."`` into vertices."""
    points = []
    for pair in text.split(";"):
        if not pair.strip():
            continue
        lat, lon = pair.split(",")
        points.append((float(lat), float(lon)))
    return points


def load_features(path: Path) -> list[dict[str, Any]]:
    """Return the features of a GeoJSON Feature or FeatureCollection."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if data.get("type") == "FeatureCollection":
        return list(data.get("features", []))
    return [data]


def render_regions(
    output_path: Path,
    polygons: list[str],
    geojson_path: Path | None,
    state_path: Path | None,
    dataset: str,
    hour: int | None,
    hour_range: tuple[int, int] | None,
    title: str | None = None,
) -> None:
    """Build a dashboard, resolve every region once, and write a PNG.

    Args:
        output_path: Path for the output PNG file.
        polygons: ``"lat,lon;..."`` strings, one per region.
        geojson_path: Optional GeoJSON file with Polygon features.
        state_path: Optional saved dashboard state to start from.
        dataset: Dataset for regions without their own.
        hour: Hour offset for single-instant mode.
        hour_range: Inclusive hour range for range mode.
        title: Optional map title.
    """
    surface = StaticMapSurface()
    # Cycles run explicitly via refresh()
    config = rw.Config(debounce_seconds=3600.0)

    with rw.Dashboard(config=config, surface=surface) as dash:
        if state_path is not None:
            dash.load(state_path)

        for text in polygons:
            dash.draw_region(parse_polygon(text), dataset=dataset)

        if geojson_path is not None:
            for feature in load_features(geojson_path):
                props = feature.get("properties") or {}
                dash.draw_geojson(
                    feature,
                    dataset=props.get("dataset", dataset),
                    name=props.get("name"),
                )

        if not dash.regions:
            raise ValueError("No regions given; use --polygon, --geojson or --state")

        if hour_range is not None:
            dash.store.set_timeline_mode(rw.TimelineMode.RANGE)
            dash.store.set_selected_range(hour_range)
        elif hour is not None:
            dash.store.set_selected_time(hour)

        print(f"Resolving {len(dash.regions)} regions...")
        report = dash.refresh()
        if report is not None:
            for region_id, failure in report.failures.items():
                print(f"  [WARN] {region_id}: {failure.message}")

        frame = dash.to_dataframe()
        columns = ["name", "dataset", "formatted_value", "color"]
        print(frame[columns].to_string(index=False))

        surface.to_png(output_path, title=title)
        if state_path is not None:
            dash.save(state_path)

    print(f"\n[OK] Map saved to: {output_path.absolute()}")


def main() -> None:
    """Parse arguments and render the map."""
    parser = argparse.ArgumentParser(
        description="Resolve weather values for regions and render them to PNG.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python render_regions.py --polygon "22.5,88.3;22.6,88.3;22.6,88.4" -o map.png
  python render_regions.py --geojson fields.geojson --dataset wind --hour 400
        """,
    )
    parser.add_argument(
        "--polygon",
        action="append",
        default=[],
        help='Region vertices as "lat,lon;lat,lon;..." (repeatable)',
    )
    parser.add_argument(
        "--geojson",
        type=Path,
        default=None,
        help="GeoJSON file with Polygon features",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="Dashboard state file to load and update",
    )
    parser.add_argument(
        "--dataset",
        choices=[kind.value for kind in rw.DatasetKind],
        default=rw.DatasetKind.TEMPERATURE.value,
        help="Dataset for regions without one (default: temperature)",
    )
    parser.add_argument(
        "--hour",
        type=int,
        default=None,
        help="Hour offset in the 30-day window, 0-720 (default: 360)",
    )
    parser.add_argument(
        "--range",
        type=int,
        nargs=2,
        metavar=("START", "END"),
        default=None,
        help="Average over an inclusive hour range instead of one hour",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default="regions.png",
        help="Output PNG file path (default: regions.png)",
    )
    parser.add_argument("--title", type=str, default=None, help="Map title")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.hour is not None and not 0 <= args.hour <= 720:
        print(f"Error: Invalid hour {args.hour}. Must be between 0 and 720.")
        sys.exit(1)

    try:
        for text in args.polygon:
            parse_polygon(text)
    except ValueError:
        print('Error: --polygon must look like "lat,lon;lat,lon;lat,lon".')
        sys.exit(1)

    try:
        render_regions(
            output_path=Path(args.output),
            polygons=args.polygon,
            geojson_path=args.geojson,
            state_path=args.state,
            dataset=args.dataset,
            hour=args.hour,
            hour_range=tuple(args.range) if args.range else None,
            title=args.title,
        )
    except (rw.RegionWeatherError, ValueError, OSError) as e:
        print(f"\nError rendering regions: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
