"""regionweather exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations

from regionweather._types import FailureKind


class RegionWeatherError(Exception):
    """Base exception for all regionweather errors.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise RegionWeatherError(
        ...     what="Operation failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts.

        Returns:
            Formatted message with optional Cause and Fix lines.
        """
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(RegionWeatherError):
    """Raised for invalid configuration or unknown provider names.

    Example:
        >>> raise ConfigurationError(
        ...     what="Unknown provider: 'meteo'",
        ...     cause="Valid providers are: open-meteo",
        ...     fix="Use one of: open-meteo",
        ... )
    """


class RegionValidationError(RegionWeatherError):
    """Raised when a region or colour rule is rejected on input.

    Validation errors are raised synchronously; the rejected value never
    enters the region store.

    Example:
        >>> raise RegionValidationError(
        ...     what="Cannot create region",
        ...     cause="Polygon has 2 points",
        ...     fix="Draw a polygon with 3 to 12 points",
        ... )
    """


class ProviderError(RegionWeatherError):
    """Raised by time-series providers when a fetch fails.

    The resolver converts these into ``ResolutionFailure`` values, so
    callers of ``DatasetResolver.resolve`` never see this exception.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.
        kind: Failure category.
        status_code: HTTP status of the provider response, if any.

    Example:
        >>> raise ProviderError(
        ...     what="Open-Meteo request failed",
        ...     cause="HTTP 503",
        ...     fix="Try again later",
        ...     kind=FailureKind.PROVIDER_ERROR,
        ...     status_code=503,
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
        kind: FailureKind = FailureKind.PROVIDER_ERROR,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        super().__init__(what=what, cause=cause, fix=fix)


class RenderingError(RegionWeatherError):
    """Raised when the rendering surface rejects an overlay mutation.

    Example:
        >>> raise RenderingError(
        ...     what="Cannot add layer 'region-abc'",
        ...     cause="Layer already exists",
        ...     fix="Remove the layer before adding it again",
        ... )
    """


class PersistenceError(RegionWeatherError):
    """Raised when saved dashboard state cannot be read.

    Example:
        >>> raise PersistenceError(
        ...     what="Cannot load dashboard state",
        ...     cause="JSON parse error in state.json",
        ...     fix="Delete the state file to start fresh",
        ... )
    """
