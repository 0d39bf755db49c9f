"""Open-Meteo hourly forecast access."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from typing import Any

import requests
from pydantic import ValidationError

from regionweather._types import DatasetKind, FailureKind, LatLon
from regionweather.config import Config
from regionweather.exceptions import ProviderError
from regionweather.providers.base import CancelToken, ProviderStatus, TimeSeriesProvider
from regionweather.series import TimelineWindow, TimeSeries

logger = logging.getLogger(__name__)

_STATUS_TIMEOUT = 5  # seconds
_CHUNK_SIZE = 16 * 1024
_SUCCESS_STATUS_CODES = frozenset({200})
_PROVIDER_FIX = "Check Open-Meteo status at https://open-meteo.com and try again"


class OpenMeteoProvider(TimeSeriesProvider):
    """Open-Meteo forecast provider.

    Public API, no authentication. Each ``fetch`` is one GET request whose
    total duration (connect plus body download) is capped by
    ``config.request_timeout``. The body is streamed so a
    ``CancelToken`` can abort it between chunks.

    Args:
        config: Frozen configuration snapshot.
        session: Optional ``requests.Session`` to reuse.

    Example:
        >>> provider = OpenMeteoProvider(config=Config())
        >>> provider.name
        'open-meteo'
    """

    _name: str = "open-meteo"

    def __init__(
        self,
        config: Config,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(config)
        self._session: requests.Session = session or requests.Session()

    @staticmethod
    def build_params(
        location: LatLon,
        datasets: Sequence[DatasetKind],
        window: TimelineWindow,
    ) -> dict[str, str]:
        """Build query parameters for the forecast endpoint.

        Example:
            >>> from datetime import date
            >>> w = TimelineWindow(date(2024, 1, 1), date(2024, 1, 31))
            >>> OpenMeteoProvider.build_params(
            ...     (52.2, 21.0), [DatasetKind.TEMPERATURE, DatasetKind.WIND], w
            ... )["hourly"]
            'temperature_2m,wind_speed_10m'
        """
        lat, lon = location
        start, end = window.as_iso()
        return {
            "latitude": str(lat),
            "longitude": str(lon),
            "start_date": start,
            "end_date": end,
            "hourly": ",".join(kind.provider_field for kind in datasets),
            "timezone": "auto",
        }

    def fetch(
        self,
        location: LatLon,
        datasets: Sequence[DatasetKind],
        window: TimelineWindow,
        cancel_token: CancelToken | None = None,
    ) -> TimeSeries:
        """Download hourly data from Open-Meteo.

        Raises:
            ProviderError: ``TIMED_OUT`` on timeout or cancellation,
                ``NETWORK_UNAVAILABLE`` on transport failure,
                ``PROVIDER_ERROR`` on a non-200 status, and
                ``INVALID_RESPONSE`` when the body is not a valid series.
        """
        params = self.build_params(location, datasets, window)
        timeout = self._config.request_timeout
        deadline = time.monotonic() + timeout

        logger.info(
            "Fetching %s for (%.4f, %.4f) %s..%s",
            params["hourly"],
            location[0],
            location[1],
            params["start_date"],
            params["end_date"],
        )

        try:
            resp = self._session.get(
                self._config.provider_url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=timeout,
                stream=True,
            )
        except requests.Timeout as exc:
            raise self._timeout_error(timeout) from exc
        except requests.RequestException as exc:
            raise ProviderError(
                what="Open-Meteo request failed",
                cause=f"{type(exc).__name__}: {exc}",
                fix="Check internet connection and try again",
                kind=FailureKind.NETWORK_UNAVAILABLE,
            ) from exc

        try:
            if resp.status_code not in _SUCCESS_STATUS_CODES:
                raise ProviderError(
                    what="Open-Meteo request failed",
                    cause=f"HTTP {resp.status_code} {resp.reason or ''}".strip(),
                    fix=_PROVIDER_FIX,
                    kind=FailureKind.PROVIDER_ERROR,
                    status_code=resp.status_code,
                )
            body = self._read_body(resp, deadline, timeout, cancel_token)
        finally:
            resp.close()

        return self._parse(body)

    def _read_body(
        self,
        resp: requests.Response,
        deadline: float,
        timeout: float,
        cancel_token: CancelToken | None,
    ) -> bytes:
        """Stream the response body, honouring deadline and cancellation."""
        chunks: list[bytes] = []
        try:
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                if cancel_token is not None and cancel_token.cancelled:
                    logger.info("Open-Meteo fetch cancelled")
                    raise self._timeout_error(timeout, cancelled=True)
                if time.monotonic() > deadline:
                    raise self._timeout_error(timeout)
                chunks.append(chunk)
        except requests.Timeout as exc:
            raise self._timeout_error(timeout) from exc
        except requests.RequestException as exc:
            raise ProviderError(
                what="Open-Meteo response interrupted",
                cause=f"{type(exc).__name__}: {exc}",
                fix="Check internet connection and try again",
                kind=FailureKind.NETWORK_UNAVAILABLE,
            ) from exc
        return b"".join(chunks)

    @staticmethod
    def _parse(body: bytes) -> TimeSeries:
        """Decode and validate a response body."""
        try:
            payload: Any = json.loads(body)
        except ValueError as exc:
            raise ProviderError(
                what="Open-Meteo response could not be decoded",
                cause="Invalid JSON response",
                fix="Try again; if persistent, check Open-Meteo status",
                kind=FailureKind.INVALID_RESPONSE,
            ) from exc

        try:
            return TimeSeries.model_validate(payload)
        except ValidationError as exc:
            raise ProviderError(
                what="Open-Meteo response has an unexpected shape",
                cause=str(exc.errors()[0]["msg"]) if exc.errors() else str(exc),
                fix="Try again; if persistent, report the response format change",
                kind=FailureKind.INVALID_RESPONSE,
            ) from exc

    @staticmethod
    def _timeout_error(timeout: float, cancelled: bool = False) -> ProviderError:
        cause = "Request cancelled" if cancelled else f"No response within {timeout}s"
        return ProviderError(
            what="Open-Meteo request timed out",
            cause=cause,
            fix="Try again",
            kind=FailureKind.TIMED_OUT,
        )

    def check_status(self) -> ProviderStatus:
        """Check that the Open-Meteo endpoint answers a minimal query."""
        try:
            resp = self._session.get(
                self._config.provider_url,
                params={"latitude": "0", "longitude": "0", "hourly": "temperature_2m"},
                timeout=_STATUS_TIMEOUT,
            )
            if resp.status_code in _SUCCESS_STATUS_CODES:
                return ProviderStatus(available=True)
            return ProviderStatus(
                available=False,
                message=f"Open-Meteo returned HTTP {resp.status_code}",
            )
        except requests.RequestException as exc:
            return ProviderStatus(
                available=False,
                message=f"Open-Meteo API unreachable: {exc}",
            )
