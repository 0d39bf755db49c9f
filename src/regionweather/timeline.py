"""Timeline position model and the playback driver.

Hour offsets index into the fixed 30-day ``TimelineWindow``: 0 is the
first hour of the window and ``MAX_HOUR_OFFSET`` (720) its end.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from regionweather._types import MAX_HOUR_OFFSET, HourRange

if TYPE_CHECKING:
    from regionweather.store import RegionStore

logger = logging.getLogger(__name__)

DEFAULT_SELECTED_TIME = 360
DEFAULT_SELECTED_RANGE: HourRange = (300, 420)


class TimelineMode(str, Enum):
    """Which of instant or range drives resolution."""

    SINGLE = "single"
    RANGE = "range"


def clamp_hour(hour: int) -> int:
    """Clamp an hour offset into ``[0, MAX_HOUR_OFFSET]``."""
    return max(0, min(int(hour), MAX_HOUR_OFFSET))


class TimelineState(BaseModel):
    """Current timeline position.

    Both ``selected_time`` and ``selected_range`` are kept regardless of
    mode so switching modes restores the previous position.

    Args:
        mode: ``single`` resolves at ``selected_time``; ``range`` averages
            over ``selected_range``.
        selected_time: Hour offset in ``[0, 720]``.
        selected_range: Inclusive ``(start, end)`` offsets, start <= end.
        is_playing: Whether playback is advancing ``selected_time``.

    Example:
        >>> TimelineState(selected_range=(420, 300)).selected_range
        (300, 420)
    """

    model_config = ConfigDict(frozen=True)

    mode: TimelineMode = TimelineMode.SINGLE
    selected_time: int = DEFAULT_SELECTED_TIME
    selected_range: HourRange = DEFAULT_SELECTED_RANGE
    is_playing: bool = False

    @field_validator("selected_time")
    @classmethod
    def _validate_time(cls, v: int) -> int:
        if not 0 <= v <= MAX_HOUR_OFFSET:
            msg = f"selected_time must be between 0 and {MAX_HOUR_OFFSET}"
            raise ValueError(msg)
        return v

    @field_validator("selected_range")
    @classmethod
    def _order_range(cls, v: HourRange) -> HourRange:
        start, end = v
        for bound in (start, end):
            if not 0 <= bound <= MAX_HOUR_OFFSET:
                msg = f"selected_range bounds must be between 0 and {MAX_HOUR_OFFSET}"
                raise ValueError(msg)
        return (min(start, end), max(start, end))


class PlaybackDriver:
    """Advances the single-instant timeline on a fixed cadence.

    ``start()`` remembers the current instant and steps ``selected_time``
    forward by one hour every ``step_seconds``. When the next step would
    reach the end of the window, playback stops and the remembered
    instant is restored. ``stop()`` halts without restoring.

    Args:
        store: Store whose timeline is driven.
        step_seconds: Interval between steps.

    Example:
        >>> driver = PlaybackDriver(store, step_seconds=0.1)  # doctest: +SKIP
        >>> driver.start()  # doctest: +SKIP
    """

    def __init__(self, store: RegionStore, step_seconds: float = 0.1) -> None:
        self._store = store
        self._step_seconds = step_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._initial_time: int | None = None

    @property
    def running(self) -> bool:
        """Whether playback is active."""
        with self._lock:
            return self._initial_time is not None

    def start(self, schedule: bool = True) -> None:
        """Begin playback from the current instant.

        Args:
            schedule: When ``False`` no timer is started and the caller
                drives playback through ``step()``.
        """
        with self._lock:
            if self._initial_time is not None:
                return
            self._initial_time = self._store.snapshot().timeline.selected_time
        self._store.set_playing(True)
        logger.debug("Playback started at hour %d", self._initial_time)
        if schedule:
            self._schedule()

    def stop(self) -> None:
        """Halt playback, leaving the instant where it is."""
        with self._lock:
            self._cancel_timer()
            was_running = self._initial_time is not None
            self._initial_time = None
        if was_running:
            self._store.set_playing(False)
            logger.debug("Playback stopped")

    def step(self) -> bool:
        """Advance one hour.

        Returns:
            ``True`` if playback continues, ``False`` once it has ended.
        """
        with self._lock:
            initial = self._initial_time
        if initial is None:
            return False

        next_time = self._store.snapshot().timeline.selected_time + 1
        if next_time >= MAX_HOUR_OFFSET:
            with self._lock:
                self._cancel_timer()
                self._initial_time = None
            self._store.set_selected_time(initial)
            self._store.set_playing(False)
            logger.debug("Playback reached end of window; restored hour %d", initial)
            return False

        self._store.set_selected_time(next_time)
        return True

    def _schedule(self) -> None:
        with self._lock:
            if self._initial_time is None:
                return
            self._timer = threading.Timer(self._step_seconds, self._tick)
            self._timer.daemon = True
            self._timer.start()

    def _tick(self) -> None:
        if self.step():
            self._schedule()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
