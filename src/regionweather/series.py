"""Typed hourly time-series schema and the fixed timeline window.

Provider responses are validated into ``TimeSeries`` at the boundary so
that a missing dataset surfaces as ``None`` from ``values_for`` instead of
an arbitrary lookup failure further down the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, ConfigDict, model_validator

from regionweather._types import (
    PROVIDER_FIELDS,
    WINDOW_DAYS_BACK,
    WINDOW_DAYS_FORWARD,
    DatasetKind,
)

if TYPE_CHECKING:
    import pandas as pd


@dataclass(frozen=True)
class TimelineWindow:
    """The 30-day period over which hourly data is fetched.

    The window is anchored to a calendar date, not to the timeline
    position: hour offset 0 is midnight of ``start``.

    Args:
        start: First calendar day of the window.
        end: Last calendar day of the window.

    Example:
        >>> w = TimelineWindow.around(datetime(2024, 6, 16, 13, tzinfo=timezone.utc))
        >>> w.as_iso()
        ('2024-06-01', '2024-07-01')
    """

    start: date
    end: date

    @classmethod
    def around(cls, now: datetime | None = None) -> TimelineWindow:
        """Build the window centred on *now*'s UTC calendar date."""
        if now is None:
            now = datetime.now(timezone.utc)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        base = now.date()
        return cls(
            start=base - timedelta(days=WINDOW_DAYS_BACK),
            end=base + timedelta(days=WINDOW_DAYS_FORWARD),
        )

    def as_iso(self) -> tuple[str, str]:
        """Return ``(start, end)`` as ISO-8601 dates."""
        return (self.start.isoformat(), self.end.isoformat())

    def timestamp_for(self, hour_offset: int) -> datetime:
        """Return the naive timestamp an hour offset points at."""
        midnight = datetime(self.start.year, self.start.month, self.start.day)
        return midnight + timedelta(hours=hour_offset)


class HourlySeries(BaseModel):
    """Index-aligned hourly arrays from the provider.

    Missing samples arrive as JSON ``null`` and are kept as ``None``.
    Fields the request did not ask for stay ``None``.
    """

    model_config = ConfigDict(frozen=True)

    time: tuple[str, ...]
    temperature_2m: tuple[float | None, ...] | None = None
    wind_speed_10m: tuple[float | None, ...] | None = None
    cloud_cover: tuple[float | None, ...] | None = None
    precipitation: tuple[float | None, ...] | None = None

    @model_validator(mode="after")
    def _check_alignment(self) -> HourlySeries:
        """Every present array must be aligned with ``time``."""
        expected = len(self.time)
        for field_name in PROVIDER_FIELDS.values():
            values = getattr(self, field_name)
            if values is not None and len(values) != expected:
                msg = (
                    f"hourly.{field_name} has {len(values)} samples "
                    f"but hourly.time has {expected}"
                )
                raise ValueError(msg)
        return self


class TimeSeries(BaseModel):
    """Validated provider response for one location.

    Instances are immutable; cache entries are never updated in place.

    Example:
        >>> ts = TimeSeries.model_validate({
        ...     "latitude": 52.2, "longitude": 21.0,
        ...     "hourly": {"time": ["2024-01-01T00:00"], "temperature_2m": [3.5]},
        ... })
        >>> ts.values_for(DatasetKind.TEMPERATURE).tolist()
        [3.5]
        >>> ts.values_for(DatasetKind.WIND) is None
        True
    """

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    hourly: HourlySeries

    def values_for(self, dataset: DatasetKind) -> npt.NDArray[np.float64] | None:
        """Return samples for *dataset* with ``NaN`` for missing hours.

        Returns:
            A new float array, or ``None`` when the response does not
            carry the dataset.
        """
        raw = getattr(self.hourly, dataset.provider_field)
        if raw is None:
            return None
        return np.array(
            [np.nan if v is None else v for v in raw], dtype=np.float64
        )

    def available_datasets(self) -> list[DatasetKind]:
        """Return the dataset kinds present in this response."""
        return [
            kind
            for kind, field_name in PROVIDER_FIELDS.items()
            if getattr(self.hourly, field_name) is not None
        ]

    def to_dataframe(self) -> pd.DataFrame:
        """Export the series to a pandas DataFrame indexed by timestamp.

        Columns are dataset names (``temperature``, ``wind``, ...) for
        every dataset present in the response.
        """
        import pandas as pd

        columns: dict[str, Any] = {
            kind.value: self.values_for(kind) for kind in self.available_datasets()
        }
        index = pd.to_datetime(list(self.hourly.time))
        frame = pd.DataFrame(columns, index=index)
        frame.index.name = "time"
        return frame
