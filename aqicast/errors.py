"""Exception hierarchy shared by the forecast core and its providers.

The core only raises these; `aqicast.main` maps them onto HTTP responses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AQICastError(Exception):
    """Base exception for all forecast/calendar errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(AQICastError):
    """The location query did not resolve to any station (404)."""

    def __init__(self, query: str, message: str = "", **details: Any):
        super().__init__(
            message=message or f"Could not find air quality data for '{query}'",
            status_code=404,
            error_code="NOT_FOUND",
            details={"query": query, **details},
        )


class UpstreamUnavailableError(AQICastError):
    """A provider was unreachable, timed out or answered with malformed data (502)."""

    def __init__(self, provider: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Provider '{provider}' unavailable: {message}" if message else f"Provider '{provider}' unavailable",
            status_code=502,
            error_code="UPSTREAM_UNAVAILABLE",
            details={"provider": provider, **details},
        )
        self.provider = provider


class ConfigurationError(AQICastError):
    """Required credentials or settings are missing (500)."""

    def __init__(self, message: str, *, setting: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else {},
        )


class EncodingError(AQICastError):
    """Forecast data violates a calendar encoder invariant (500)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            status_code=500,
            error_code="ENCODING_ERROR",
            details=details,
        )
