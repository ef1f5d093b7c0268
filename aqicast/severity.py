"""Map AQI values onto US EPA health categories and calendar markers."""

from __future__ import annotations

import datetime as dt
from typing import Optional, Tuple

from aqicast.domain import DailyRecord, HealthStatus, PollutantReading, SeverityMarker

# Inclusive upper bounds; anything above the last bound is Hazardous.
AQI_BANDS: Tuple[Tuple[int, HealthStatus, SeverityMarker], ...] = (
    (50, HealthStatus.GOOD, SeverityMarker.GREEN),
    (100, HealthStatus.MODERATE, SeverityMarker.YELLOW),
    (150, HealthStatus.UNHEALTHY_FOR_SENSITIVE, SeverityMarker.ORANGE),
    (200, HealthStatus.UNHEALTHY, SeverityMarker.RED),
    (300, HealthStatus.VERY_UNHEALTHY, SeverityMarker.PURPLE),
)


def classify(aqi: int) -> Tuple[HealthStatus, SeverityMarker]:
    """Return (status, marker) for an AQI value. Total: no input is rejected or clamped."""
    for upper, status, marker in AQI_BANDS:
        if aqi <= upper:
            return status, marker
    return HealthStatus.HAZARDOUS, SeverityMarker.BROWN


def status_for(aqi: int) -> HealthStatus:
    return classify(aqi)[0]


def marker_for(aqi: int) -> SeverityMarker:
    return classify(aqi)[1]


def make_record(
    date: dt.date,
    aqi: int,
    description: str = "",
    pollutants: Optional[PollutantReading] = None,
) -> DailyRecord:
    """Build a DailyRecord whose status and marker always follow its index."""
    status, marker = classify(aqi)
    return DailyRecord(
        date=date,
        aqi=aqi,
        status=status,
        marker=marker,
        description=description,
        pollutants=pollutants,
    )
