"""Tests for the Open-Meteo hourly forecast provider."""

from __future__ import annotations

import itertools
import json
from datetime import date
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from regionweather._types import DatasetKind, FailureKind
from regionweather.config import Config
from regionweather.exceptions import ProviderError
from regionweather.providers.base import CancelToken
from regionweather.providers.open_meteo import OpenMeteoProvider
from regionweather.series import TimelineWindow

WINDOW = TimelineWindow(date(2024, 6, 1), date(2024, 7, 1))
LOCATION = (22.5411, 88.3378)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _payload(**fields: list[Any]) -> dict[str, Any]:
    n = len(next(iter(fields.values()))) if fields else 0
    hourly: dict[str, Any] = {"time": [f"2024-06-01T{i:02d}:00" for i in range(n)]}
    hourly.update(fields)
    return {"latitude": LOCATION[0], "longitude": LOCATION[1], "hourly": hourly}


def _mock_response(
    status_code: int = 200,
    body: bytes | None = None,
    chunks: list[bytes] | None = None,
) -> MagicMock:
    """Return a mock streamed Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.reason = "OK" if status_code == 200 else "Service Unavailable"
    if chunks is None:
        chunks = [body if body is not None else b""]
    resp.iter_content.return_value = iter(chunks)
    return resp


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def provider(session: MagicMock) -> OpenMeteoProvider:
    return OpenMeteoProvider(config=Config(request_timeout=5.0), session=session)


# ---------------------------------------------------------------------------
# Request parameters
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestBuildParams:
    """Verify the query string sent to the forecast endpoint."""

    def test_params(self) -> None:
        params = OpenMeteoProvider.build_params(
            LOCATION, [DatasetKind.TEMPERATURE, DatasetKind.CLOUD], WINDOW
        )
        assert params == {
            "latitude": "22.5411",
            "longitude": "88.3378",
            "start_date": "2024-06-01",
            "end_date": "2024-07-01",
            "hourly": "temperature_2m,cloud_cover",
            "timezone": "auto",
        }

    def test_fetch_sends_one_streamed_get(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        body = json.dumps(_payload(temperature_2m=[1.0, 2.0])).encode()
        session.get.return_value = _mock_response(body=body)

        provider.fetch(LOCATION, [DatasetKind.TEMPERATURE], WINDOW)

        assert session.get.call_count == 1
        args, kwargs = session.get.call_args
        assert args[0] == "https://api.open-meteo.com/v1/forecast"
        assert kwargs["headers"] == {"Accept": "application/json"}
        assert kwargs["timeout"] == 5.0
        assert kwargs["stream"] is True
        assert kwargs["params"]["hourly"] == "temperature_2m"


# ---------------------------------------------------------------------------
# Successful responses
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestFetchSuccess:
    """Verify valid responses are parsed into TimeSeries."""

    def test_parses_series(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        body = json.dumps(_payload(wind_speed_10m=[3.0, None, 5.0])).encode()
        session.get.return_value = _mock_response(body=body)

        series = provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)

        values = series.values_for(DatasetKind.WIND)
        assert values is not None
        assert len(values) == 3
        assert series.values_for(DatasetKind.TEMPERATURE) is None

    def test_body_across_chunks(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        body = json.dumps(_payload(precipitation=[0.0, 0.4])).encode()
        session.get.return_value = _mock_response(chunks=[body[:10], body[10:]])

        series = provider.fetch(LOCATION, [DatasetKind.PRECIPITATION], WINDOW)

        assert series.values_for(DatasetKind.PRECIPITATION).tolist() == [0.0, 0.4]

    def test_response_closed(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        resp = _mock_response(body=json.dumps(_payload(cloud_cover=[1])).encode())
        session.get.return_value = resp
        provider.fetch(LOCATION, [DatasetKind.CLOUD], WINDOW)
        resp.close.assert_called_once()


# ---------------------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestFetchFailures:
    """Verify each failure is raised as ProviderError with the right kind."""

    def test_timeout(self, provider: OpenMeteoProvider, session: MagicMock) -> None:
        session.get.side_effect = requests.Timeout("slow")
        with pytest.raises(ProviderError) as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.TIMED_OUT

    def test_connection_error(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        session.get.side_effect = requests.ConnectionError("offline")
        with pytest.raises(ProviderError) as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.NETWORK_UNAVAILABLE

    def test_http_error_status(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        resp = _mock_response(status_code=503)
        session.get.return_value = resp
        with pytest.raises(ProviderError) as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.PROVIDER_ERROR
        assert exc_info.value.status_code == 503
        assert "HTTP 503" in exc_info.value.cause
        resp.close.assert_called_once()

    def test_invalid_json(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        session.get.return_value = _mock_response(body=b"<html>")
        with pytest.raises(ProviderError) as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.INVALID_RESPONSE

    def test_schema_mismatch(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        body = json.dumps({"latitude": 1, "longitude": 2}).encode()
        session.get.return_value = _mock_response(body=body)
        with pytest.raises(ProviderError) as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.INVALID_RESPONSE

    def test_interrupted_body(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        resp = _mock_response()
        resp.iter_content.side_effect = requests.ConnectionError("reset")
        session.get.return_value = resp
        with pytest.raises(ProviderError) as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.NETWORK_UNAVAILABLE


# ---------------------------------------------------------------------------
# Deadline and cancellation
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestDeadlineAndCancellation:
    """Verify the hard timeout and cooperative cancellation."""

    def test_cancelled_token_times_out(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        session.get.return_value = _mock_response(chunks=[b"{", b"}"])
        token = CancelToken()
        token.cancel()
        with pytest.raises(ProviderError, match="cancelled") as exc_info:
            provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW, token)
        assert exc_info.value.kind is FailureKind.TIMED_OUT

    def test_deadline_exceeded_while_streaming(
        self, provider: OpenMeteoProvider, session: MagicMock
    ) -> None:
        session.get.return_value = _mock_response(chunks=[b"{", b"}"])
        # First reading sets the deadline, the next is past it
        clock = itertools.chain([100.0], itertools.repeat(200.0))
        with patch(
            "regionweather.providers.open_meteo.time.monotonic",
            side_effect=lambda: next(clock),
        ):
            with pytest.raises(ProviderError) as exc_info:
                provider.fetch(LOCATION, [DatasetKind.WIND], WINDOW)
        assert exc_info.value.kind is FailureKind.TIMED_OUT


# ---------------------------------------------------------------------------
# Status check
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestCheckStatus:
    """Verify check_status never raises."""

    def test_available(self, provider: OpenMeteoProvider, session: MagicMock) -> None:
        session.get.return_value = _mock_response()
        assert provider.check_status().available is True

    def test_http_error(self, provider: OpenMeteoProvider, session: MagicMock) -> None:
        session.get.return_value = _mock_response(status_code=500)
        status = provider.check_status()
        assert status.available is False
        assert "HTTP 500" in status.message

    def test_unreachable(self, provider: OpenMeteoProvider, session: MagicMock) -> None:
        session.get.side_effect = requests.ConnectionError("down")
        status = provider.check_status()
        assert status.available is False
        assert "unreachable" in status.message
