"""Helpers for fetching hourly air-quality forecasts from the Open-Meteo API."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from aqicast.aggregation import CombinedIndexStream, daily_from_samples
from aqicast.domain import PollutantKind, Source
from aqicast.errors import UpstreamUnavailableError
from aqicast.data_sources.http_session import request_json
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag='open_meteo_client')

PROVIDER = "open_meteo"
OPEN_METEO_AIR_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"
OPEN_METEO_SOURCE = Source(title="Open-Meteo Air Quality API", uri="https://open-meteo.com/en/docs/air-quality-api")

HOURLY_VARS = ["us_aqi", "pm2_5", "pm10", "ozone", "nitrogen_dioxide", "carbon_monoxide"]

# Open-Meteo variable name -> pollutant kind.
OPEN_METEO_POLLUTANTS: Dict[str, PollutantKind] = {
    "pm2_5": PollutantKind.PM2_5,
    "pm10": PollutantKind.PM10,
    "ozone": PollutantKind.O3,
    "nitrogen_dioxide": PollutantKind.NO2,
    "carbon_monoxide": PollutantKind.CO,
}

EXPECTED_AIR_UNITS = {
    "pm2_5": "μg/m³",
    "pm10": "μg/m³",
    "ozone": "μg/m³",
    "nitrogen_dioxide": "μg/m³",
    "carbon_monoxide": "μg/m³",
    "us_aqi": "USAQI",
}

# Acceptable alternative spellings that should not trigger warnings.
ALLOWED_AIR_UNIT_SYNONYMS = {
    "pm2_5": {"µg/m³", "μg/m³", "ug/m3"},
    "pm10": {"µg/m³", "μg/m³", "ug/m3"},
    "ozone": {"µg/m³", "μg/m³", "ug/m3"},
    "nitrogen_dioxide": {"µg/m³", "μg/m³", "ug/m3"},
    "carbon_monoxide": {"µg/m³", "μg/m³", "ug/m3"},
    "us_aqi": {"USAQI", "aqi", "US AQI"},
}


@dataclass
class AirHour:
    """Normalized hourly air-quality reading returned by Open-Meteo."""
    time: dt.datetime  # timezone-aware
    us_aqi: Optional[float]
    pm2_5: Optional[float]
    pm10: Optional[float]
    ozone: Optional[float]
    nitrogen_dioxide: Optional[float]
    carbon_monoxide: Optional[float]


def _zone(tz_name: Optional[str]) -> dt.tzinfo:
    """Resolve the timezone Open-Meteo reported, falling back to UTC."""
    if not tz_name:
        return dt.timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown Open-Meteo timezone; using UTC", extra={"timezone": tz_name})
        return dt.timezone.utc


def _iso_to_dt_with_tz(s: str, tz: dt.tzinfo) -> dt.datetime:
    """Interpret an Open-Meteo local time string as being in `tz`."""
    return dt.datetime.fromisoformat(s).replace(tzinfo=tz)


def _warn_on_unexpected_air_units(units: dict, *, context: str):
    """Log a warning if Open-Meteo returns unexpected air-quality units."""
    if not units:
        return
    for field_name, expected in EXPECTED_AIR_UNITS.items():
        actual = units.get(field_name)
        if actual is None or actual == expected:
            continue
        allowed = ALLOWED_AIR_UNIT_SYNONYMS.get(field_name, set())
        if actual not in allowed:
            logger.warning(
                "Unexpected Open-Meteo air unit",
                extra={"context": context, "field": field_name, "unit": actual, "expected": expected},
            )


def _reading(value: Any) -> Optional[float]:
    """Numbers pass through; null or anything else is treated as not reported."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_air_hours(data: Any) -> List[AirHour]:
    """Turn an Open-Meteo hourly payload into AirHour rows; raises on a malformed payload."""
    hourly = data.get("hourly") if isinstance(data, dict) else None
    times = hourly.get("time") if isinstance(hourly, dict) else None
    if not isinstance(times, list):
        raise UpstreamUnavailableError(PROVIDER, "payload has no hourly time axis")

    units = data.get("hourly_units")
    _warn_on_unexpected_air_units(units if isinstance(units, dict) else {}, context="air_hourly")
    tz_name = data.get("timezone")
    tz = _zone(tz_name if isinstance(tz_name, str) else None)

    columns: Dict[str, list] = {}
    for name in HOURLY_VARS:
        column = hourly.get(name)
        if column is None:
            column = [None] * len(times)
        if not isinstance(column, list):
            raise UpstreamUnavailableError(PROVIDER, f"hourly '{name}' is not a list")
        columns[name] = column

    out: List[AirHour] = []
    for i, t in enumerate(times):
        try:
            stamp = _iso_to_dt_with_tz(t, tz)
        except (TypeError, ValueError):
            logger.debug("Skipping unparseable Open-Meteo timestamp", extra={"time": t})
            continue
        values = {name: _reading(col[i]) if i < len(col) else None for name, col in columns.items()}
        out.append(AirHour(time=stamp, **values))
    return out


def hours_to_stream(hours: List[AirHour]) -> CombinedIndexStream:
    """Reduce hourly rows to a daily-max combined index stream with pollutant maxima."""
    index = daily_from_samples((h.time, h.us_aqi) for h in hours)
    pollutants = {
        kind: daily_from_samples((h.time, getattr(h, name)) for h in hours)
        for name, kind in OPEN_METEO_POLLUTANTS.items()
    }
    return CombinedIndexStream(
        index=index,
        pollutants={kind: points for kind, points in pollutants.items() if points},
    )


class OpenMeteoAirClient:
    """Secondary air-quality source: model forecast for a coordinate pair."""

    def __init__(self, session: Any, *, base_url: str = OPEN_METEO_AIR_URL, timeout: float = 10.0):
        self.session = session
        self.base_url = base_url
        self.timeout = timeout

    def fetch_air_hours(self, latitude: float, longitude: float, *, forecast_days: int = 7) -> List[AirHour]:
        """Fetch up to `forecast_days` of hourly air quality forecast."""
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": ",".join(HOURLY_VARS),
            "forecast_days": forecast_days,
            "timezone": "auto",
        }
        data = request_json(self.session, self.base_url, provider=PROVIDER, params=params, timeout=self.timeout)
        hours = parse_air_hours(data)
        logger.debug("Fetched Open-Meteo air hours", extra={"hours": len(hours)})
        return hours

    def fetch_daily(self, latitude: float, longitude: float, days: int = 7) -> CombinedIndexStream:
        return hours_to_stream(self.fetch_air_hours(latitude, longitude, forecast_days=days))
