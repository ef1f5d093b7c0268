"""Domain vocabulary and strict schemas for daily air-quality forecasts.

This module defines the stable contract between the providers, the
normalization core and the calendar encoder: enums for pollutants and
severity tiers, and frozen Pydantic models for the records that flow through
the system. Interpretation logic lives in `severity`, `aggregation` and
`extension`.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class _FrozenModel(BaseModel):
    """Base model with strict extra handling; instances are immutable."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class PollutantKind(str, Enum):
    """Pollutants tracked per day, in display order."""
    PM2_5 = "pm2_5"
    PM10 = "pm10"
    O3 = "o3"
    NO2 = "no2"
    CO = "co"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES: Dict[PollutantKind, str] = {
    PollutantKind.PM2_5: "PM2.5",
    PollutantKind.PM10: "PM10",
    PollutantKind.O3: "O3",
    PollutantKind.NO2: "NO2",
    PollutantKind.CO: "CO",
}


class HealthStatus(str, Enum):
    """US EPA health category for an AQI value."""
    GOOD = "Good"
    MODERATE = "Moderate"
    UNHEALTHY_FOR_SENSITIVE = "Unhealthy for Sensitive Groups"
    UNHEALTHY = "Unhealthy"
    VERY_UNHEALTHY = "Very Unhealthy"
    HAZARDOUS = "Hazardous"


class SeverityMarker(str, Enum):
    """Coloured glyph shown in front of calendar titles, one per health tier."""
    GREEN = "\U0001F7E2"
    YELLOW = "\U0001F7E1"
    ORANGE = "\U0001F7E0"
    RED = "\U0001F534"
    PURPLE = "\U0001F7E3"
    BROWN = "\U0001F7E4"


class DataQuality(str, Enum):
    """How much of a forecast comes from measured sensor data."""
    MEASURED = "measured"
    PARTIALLY_ESTIMATED = "partially_estimated"
    FULLY_ESTIMATED = "fully_estimated"


class PollutantReading(_FrozenModel):
    """Concentrations in µg/m³. None means not reported; 0.0 is a real reading."""
    pm2_5: float | None = None
    pm10: float | None = None
    o3: float | None = None
    no2: float | None = None
    co: float | None = None

    def get(self, kind: PollutantKind) -> Optional[float]:
        return getattr(self, kind.value)

    def present(self) -> Iterator[Tuple[PollutantKind, float]]:
        """Yield (kind, value) for reported values in display order."""
        for kind in PollutantKind:
            value = self.get(kind)
            if value is not None:
                yield kind, value

    def is_empty(self) -> bool:
        return all(self.get(kind) is None for kind in PollutantKind)

    def with_fallback(self, fallback: Optional[PollutantReading]) -> PollutantReading:
        """Fill absent values from `fallback`; values present here always win."""
        if fallback is None:
            return self
        merged = {
            kind.value: self.get(kind) if self.get(kind) is not None else fallback.get(kind)
            for kind in PollutantKind
        }
        return PollutantReading(**merged)

    @classmethod
    def from_mapping(cls, values: Dict[PollutantKind, Optional[float]]) -> PollutantReading:
        return cls(**{kind.value: value for kind, value in values.items()})


class DailyRecord(_FrozenModel):
    """Canonical air-quality summary for one civil date."""
    date: dt.date
    aqi: int
    status: HealthStatus
    marker: SeverityMarker
    description: str = ""
    pollutants: PollutantReading | None = None


class Source(_FrozenModel):
    """Attribution for data used in a forecast."""
    title: str
    uri: str


class Forecast(_FrozenModel):
    """Resolved location plus its ordered daily records."""
    city: str
    country: str | None = None
    days: Tuple[DailyRecord, ...] = Field(default_factory=tuple)
    sources: Tuple[Source, ...] = Field(default_factory=tuple)
    quality: DataQuality = DataQuality.MEASURED

    @model_validator(mode="after")
    def _dates_sorted_and_unique(self) -> Forecast:
        dates = [day.date for day in self.days]
        if any(later <= earlier for earlier, later in zip(dates, dates[1:])):
            raise ValueError("forecast days must have unique dates in ascending order")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_authoritative(self) -> bool:
        return self.quality is DataQuality.MEASURED
