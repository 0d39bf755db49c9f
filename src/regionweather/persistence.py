"""Save and restore the persisted part of the dashboard state.

The state file is a JSON object::

    {
        "version": 1,
        "regions": [...],
        "viewport": {"center": [lat, lon], "zoom": 10.0},
        "weather_cache": {"<cache key>": {...}}
    }

The timeline position is deliberately not persisted. Region centroid and
area are written for readability but recomputed from the vertices on load.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from regionweather.cache import SeriesCache
from regionweather.exceptions import PersistenceError, RegionValidationError
from regionweather.store import MapViewport, Region, RegionStore

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def dump_state(store: RegionStore, cache: SeriesCache) -> dict[str, Any]:
    """Return the persisted state as a JSON-compatible dictionary."""
    snapshot = store.snapshot()
    return {
        "version": STATE_VERSION,
        "regions": [region.model_dump(mode="json") for region in snapshot.regions],
        "viewport": {
            "center": list(snapshot.viewport.center),
            "zoom": snapshot.viewport.zoom,
        },
        "weather_cache": cache.export(),
    }


def save_state(path: str | Path, store: RegionStore, cache: SeriesCache) -> Path:
    """Write regions, viewport, and cached series to *path*.

    Args:
        path: Destination JSON file; parent directories are created.
        store: Store to read regions and viewport from.
        cache: Cache whose entries are saved.

    Returns:
        The resolved path written.

    Raises:
        PersistenceError: If the file cannot be written.
    """
    resolved = Path(path).expanduser()
    document = dump_state(store, cache)
    try:
        resolved.parent.mkdir(parents=True, exist_ok=True)
        resolved.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(
            what="Cannot save dashboard state",
            cause=f"Write to {resolved} failed: {exc}",
            fix=f"Check that {resolved.parent} is writable",
        ) from exc
    logger.info(
        "Saved %d regions and %d cached series to %s",
        len(document["regions"]),
        len(document["weather_cache"]),
        resolved,
    )
    return resolved


def _invalid(resolved: Path, cause: str) -> PersistenceError:
    return PersistenceError(
        what="Invalid dashboard state file",
        cause=f"{cause} in {resolved}",
        fix=f"Fix or delete {resolved} to start from an empty dashboard",
    )


def _parse_viewport(raw: Any, resolved: Path) -> MapViewport:
    if raw is None:
        return MapViewport()
    try:
        lat, lon = raw["center"]
        return MapViewport(center=(float(lat), float(lon)), zoom=float(raw["zoom"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise _invalid(resolved, f"Malformed viewport ({exc})") from None


def load_state(path: str | Path, store: RegionStore, cache: SeriesCache) -> bool:
    """Restore state previously written by ``save_state``.

    A missing file is not an error: nothing is loaded.

    Args:
        path: JSON state file.
        store: Store receiving regions and viewport; its timeline is kept.
        cache: Cache receiving saved series; existing keys are kept.

    Returns:
        ``True`` if a file was loaded, ``False`` if it did not exist.

    Raises:
        PersistenceError: If the file is unreadable or malformed.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No saved state at %s", resolved)
        return False
    except OSError as exc:
        raise PersistenceError(
            what="Cannot read dashboard state",
            cause=f"Read from {resolved} failed: {exc}",
            fix=f"Check file permissions on {resolved}",
        ) from None

    try:
        document: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _invalid(resolved, f"JSON parse error ({exc})") from None

    if not isinstance(document, dict):
        kind = type(document).__name__
        raise _invalid(resolved, f"Expected a JSON object, got {kind}")
    version = document.get("version")
    if version != STATE_VERSION:
        raise _invalid(resolved, f"Unsupported state version {version!r}")

    raw_regions = document.get("regions", [])
    if not isinstance(raw_regions, list):
        raise _invalid(resolved, "'regions' is not a list")
    try:
        regions = [Region.model_validate(raw) for raw in raw_regions]
    except (ValidationError, RegionValidationError) as exc:
        raise _invalid(resolved, f"Invalid region ({exc})") from None

    viewport = _parse_viewport(document.get("viewport"), resolved)

    raw_cache = document.get("weather_cache", {})
    if not isinstance(raw_cache, dict):
        raise _invalid(resolved, "'weather_cache' is not an object")

    try:
        store.restore(regions, viewport)
    except RegionValidationError as exc:
        raise _invalid(resolved, str(exc)) from None
    added = cache.load(raw_cache)
    logger.info(
        "Loaded %d regions and %d cached series from %s",
        len(regions),
        added,
        resolved,
    )
    return True
