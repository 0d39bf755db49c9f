"""Resolution cycles driven by timeline and region-set changes.

The orchestrator listens to the store. When the timeline position or
mode changes, a region is added or removed, or a region is rebound to
another dataset or redrawn, it schedules a resolution
cycle through a ``Debouncer`` so a burst of triggers starts one cycle.

A cycle resolves regions one at a time in region-list order, with a
short pause between regions to bound load on the provider. Each success
writes that region's value; each failure is reported through the store's
transient error and the loop moves on. Cycles never overlap: a trigger
arriving mid-cycle queues exactly one follow-up cycle.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from regionweather.config import Config
from regionweather.resolver import DatasetResolver, ResolutionFailure
from regionweather.store import DashboardState, RegionStore

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    """Where the orchestrator is in a resolution cycle."""

    IDLE = "idle"
    RESOLVING = "resolving"
    DONE = "done"


@dataclass
class CycleReport:
    """Outcome of one resolution cycle.

    Args:
        resolved: Region id to resolved value, in processing order.
        failures: Region id to failure.
        skipped: Regions deleted or rebound to another dataset before
            their result could be written.
    """

    resolved: dict[str, float] = field(default_factory=dict)
    failures: dict[str, ResolutionFailure] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """``True`` when no region failed."""
        return not self.failures


class Debouncer:
    """Coalesces rapid calls into one delayed callback.

    Every ``trigger()`` restarts the delay; the callback runs once after
    the triggers stop for ``delay`` seconds. ``flush()`` runs a pending
    callback immediately on the calling thread.

    Args:
        delay: Quiet period in seconds.
        callback: Function to run.

    Example:
        >>> calls = []
        >>> d = Debouncer(60.0, lambda: calls.append(1))
        >>> d.trigger(); d.trigger()
        >>> d.flush()
        True
        >>> calls
        [1]
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    @property
    def pending(self) -> bool:
        """Whether a callback is scheduled."""
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        """Schedule the callback, restarting any pending delay."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> bool:
        """Run a pending callback now.

        Returns:
            ``True`` if a callback was pending.
        """
        with self._lock:
            timer = self._timer
            self._timer = None
        if timer is None:
            return False
        timer.cancel()
        self._callback()
        return True

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self._callback()


_Binding = tuple[str, str, tuple[tuple[float, float], ...]]


def _bindings(state: DashboardState) -> list[_Binding]:
    return [(r.id, r.dataset.value, r.points) for r in state.regions]


def _needs_cycle(new: DashboardState, old: DashboardState) -> bool:
    """Return ``True`` if the change should start a resolution cycle.

    Triggers: region count, timeline position or mode, and any region's
    dataset binding or vertices (both change what must be fetched).
    """
    if len(new.regions) != len(old.regions):
        return True
    if _bindings(new) != _bindings(old):
        return True
    t_new, t_old = new.timeline, old.timeline
    return (
        t_new.mode != t_old.mode
        or t_new.selected_time != t_old.selected_time
        or t_new.selected_range != t_old.selected_range
    )


class SyncOrchestrator:
    """Drives the resolver over every region and writes results back.

    Args:
        store: Region store to observe and update.
        resolver: Resolver used for each region.
        config: Supplies ``debounce_seconds`` and ``inter_region_delay``.
        sleep: Pause function used between regions.
    """

    def __init__(
        self,
        store: RegionStore,
        resolver: DatasetResolver,
        config: Config,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._config = config
        self._sleep = sleep
        self._debouncer = Debouncer(config.debounce_seconds, self._run_pending)
        self._state_lock = threading.Lock()
        self._running = False
        self._rerun = False
        self._state = CycleState.IDLE
        self._halt = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._cycle_thread: int | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self.last_report: CycleReport | None = None

    @property
    def state(self) -> CycleState:
        """Current cycle state."""
        with self._state_lock:
            return self._state

    def start(self) -> None:
        """Begin observing the store."""
        self._halt.clear()
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_change)

    def stop(self) -> None:
        """Stop observing and drop any pending trigger.

        A cycle already running finishes the region it is resolving and
        writes nothing further; ``wait_idle()`` blocks until it returns.
        """
        self._halt.set()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._debouncer.cancel()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no cycle is running.

        Returns:
            ``False`` if *timeout* elapsed first. Called from inside a
            cycle (e.g. by a store listener) it returns ``True`` at once.
        """
        with self._state_lock:
            if self._cycle_thread == threading.get_ident():
                return True
        return self._idle.wait(timeout)

    def request_cycle(self) -> None:
        """Schedule a debounced resolution cycle."""
        self._debouncer.trigger()

    def flush(self) -> bool:
        """Run a pending debounced cycle on the calling thread."""
        return self._debouncer.flush()

    def run_now(self) -> CycleReport | None:
        """Drop any pending trigger and run a cycle on the calling thread.

        If a cycle is already running elsewhere, one follow-up is queued
        and the previous report is returned.
        """
        self._debouncer.cancel()
        self._run_pending()
        return self.last_report

    def _on_change(self, new: DashboardState, old: DashboardState) -> None:
        if new.regions and _needs_cycle(new, old):
            self.request_cycle()

    def _run_pending(self) -> None:
        with self._state_lock:
            if self._running:
                self._rerun = True
                logger.debug("Cycle in progress; queued one follow-up cycle")
                return
            self._running = True
            self._cycle_thread = threading.get_ident()
            self._idle.clear()
        try:
            while True:
                self.run_cycle()
                with self._state_lock:
                    if not self._rerun or self._halt.is_set():
                        self._rerun = False
                        break
                    self._rerun = False
        finally:
            with self._state_lock:
                self._running = False
                self._cycle_thread = None
            self._idle.set()

    def run_cycle(self) -> CycleReport:
        """Resolve every region once, sequentially.

        The region list and timeline are captured at the start of the
        cycle. Regions deleted or rebound while the cycle runs are skipped
        when their result is written.

        Returns:
            What was resolved, what failed, and what was skipped.
        """
        snapshot = self._store.snapshot()
        regions = snapshot.regions
        timeline = snapshot.timeline
        report = CycleReport()
        if not regions:
            self.last_report = report
            return report

        with self._state_lock:
            self._state = CycleState.RESOLVING
        self._store.set_loading(True)
        self._store.set_error(None)
        logger.debug("Resolution cycle started for %d regions", len(regions))

        try:
            for position, region in enumerate(regions):
                if self._halt.is_set():
                    logger.debug("Cycle halted before region %s", region.id)
                    break
                if position > 0 and self._config.inter_region_delay > 0:
                    self._sleep(self._config.inter_region_delay)

                result = self._resolver.resolve_region(region, timeline)
                if self._halt.is_set():
                    report.skipped.append(region.id)
                    break
                if isinstance(result, ResolutionFailure):
                    report.failures[region.id] = result
                    logger.warning(
                        "Could not resolve %s for region %s: %s",
                        region.dataset.value,
                        region.name,
                        result.kind.value,
                    )
                    self._store.set_error(f"{region.name}: {result.message}")
                    continue

                if self._store.set_region_value(
                    region.id, result, dataset=region.dataset
                ):
                    report.resolved[region.id] = result
                else:
                    report.skipped.append(region.id)
        finally:
            self._store.set_loading(False)
            with self._state_lock:
                self._state = CycleState.DONE

        logger.info(
            "Resolution cycle done: %d resolved, %d failed, %d skipped",
            len(report.resolved),
            len(report.failures),
            len(report.skipped),
        )
        self.last_report = report
        return report
