"""Provider interface contract and shared types.

Defines the ``TimeSeriesProvider`` abstract base class implemented by
every hourly weather source, plus the cancellation token used to abort
an in-flight fetch.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from regionweather._types import DatasetKind, LatLon
from regionweather.config import Config
from regionweather.series import TimelineWindow, TimeSeries


@dataclass
class ProviderStatus:
    """Operational status of a time-series provider.

    Args:
        available: ``True`` if the provider is operational.
        message: Human-readable status message (empty when healthy).

    Example:
        >>> ProviderStatus(available=True).message
        ''
    """

    available: bool = False
    message: str = ""


class CancelToken:
    """Cooperative cancellation flag for one fetch.

    Providers poll ``cancelled`` while reading a response and abandon
    the request once it is set.

    Example:
        >>> token = CancelToken()
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel()`` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()


class TimeSeriesProvider(ABC):
    """Abstract base class for hourly weather data sources.

    Subclasses set the ``_name`` class attribute to a unique provider
    identifier and implement ``fetch`` and ``check_status``.

    Args:
        config: Frozen configuration snapshot.
    """

    _name: str = ""

    def __init__(self, config: Config) -> None:
        self._config = config

    @property
    def name(self) -> str:
        """Provider identifier used in the registry."""
        return self._name

    @abstractmethod
    def fetch(
        self,
        location: LatLon,
        datasets: Sequence[DatasetKind],
        window: TimelineWindow,
        cancel_token: CancelToken | None = None,
    ) -> TimeSeries:
        """Download the full hourly series for *datasets* at *location*.

        Issues exactly one request, bounded by ``config.request_timeout``.

        Args:
            location: ``(lat, lon)`` to fetch.
            datasets: Dataset kinds to include in the response.
            window: Calendar window to cover.
            cancel_token: Optional token that aborts the request.

        Returns:
            The validated time series.

        Raises:
            ProviderError: With ``kind`` set to the failure category.
        """
        ...

    @abstractmethod
    def check_status(self) -> ProviderStatus:
        """Check provider operational status.

        Never raises; returns ``available=False`` with a message on
        failure.
        """
        ...
