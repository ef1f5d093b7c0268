"""Factory helpers for building the configured providers at startup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from aqicast import config
from aqicast.errors import ConfigurationError
from aqicast.data_sources.base import AirQualitySeriesSource, ForecastEstimator
from aqicast.data_sources.http_session import build_session
from aqicast.data_sources.open_meteo_client import OpenMeteoAirClient
from aqicast.data_sources.waqi_client import WaqiClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


@dataclass
class Providers:
    """Everything the forecast service talks to."""
    stations: WaqiClient
    secondary: Optional[AirQualitySeriesSource] = None
    estimator: Optional[ForecastEstimator] = None


def build_station_source(settings: config.Settings, session: Any = None) -> WaqiClient:
    """Instantiate the WAQI client; the token is mandatory."""
    if not settings.waqi_token:
        raise ConfigurationError(
            "WAQI API token is not configured (set AQICAST_WAQI_TOKEN)",
            setting="waqi_token",
        )
    session = session or build_session(cache_seconds=settings.http_cache_seconds, retries=settings.http_retries)
    logger.info("Using WAQI station source", extra={"base_url": settings.waqi_base_url})
    return WaqiClient(
        session,
        settings.waqi_token,
        base_url=settings.waqi_base_url,
        timeout=settings.request_timeout_seconds,
    )


def build_secondary_source(settings: config.Settings, session: Any = None) -> Optional[OpenMeteoAirClient]:
    if not settings.open_meteo_enabled:
        logger.info("Open-Meteo secondary source disabled")
        return None
    session = session or build_session(cache_seconds=settings.http_cache_seconds, retries=settings.http_retries)
    return OpenMeteoAirClient(
        session,
        base_url=settings.open_meteo_air_url,
        timeout=settings.request_timeout_seconds,
    )


def build_estimator(settings: config.Settings) -> Optional[ForecastEstimator]:
    if not settings.estimation_enabled:
        return None
    from aqicast.estimation import OllamaEstimator
    from aqicast.ollama_client import OllamaClient

    logger.info("Using Ollama estimator", extra={"model": settings.ollama_model})
    return OllamaEstimator(OllamaClient.from_settings(settings))


def build_providers(settings: config.Settings | None = None) -> Providers:
    """Instantiate all configured providers sharing one HTTP session."""
    settings = settings or config.settings
    stations = build_station_source(settings)
    return Providers(
        stations=stations,
        secondary=build_secondary_source(settings, stations.session),
        estimator=build_estimator(settings),
    )
