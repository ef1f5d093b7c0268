"""Provider clients and interfaces for station search, feeds and estimation."""

from .base import (
    AirQualitySeriesSource,
    CallableStationSource,
    Estimate,
    ForecastEstimator,
    LocationResolver,
    StationFeedSource,
)
from .factory import Providers, build_providers
from .open_meteo_client import AirHour, OpenMeteoAirClient
from .waqi_client import StationFeed, StationMatch, WaqiClient

__all__ = [
    "build_providers",
    "Providers",
    "AirQualitySeriesSource",
    "CallableStationSource",
    "Estimate",
    "ForecastEstimator",
    "LocationResolver",
    "StationFeedSource",
    "AirHour",
    "OpenMeteoAirClient",
    "StationFeed",
    "StationMatch",
    "WaqiClient",
]
