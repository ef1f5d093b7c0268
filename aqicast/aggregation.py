"""Merge provider series into canonical, date-sorted daily records."""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from aqicast.domain import DailyRecord, PollutantKind, PollutantReading
from aqicast.severity import make_record
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="aggregation")

Point = Tuple[dt.date, Optional[float]]

DEFAULT_DESCRIPTION = "Daily air quality forecast for {date}."


@dataclass(frozen=True)
class PollutantStreams:
    """Per-pollutant index streams; the day's AQI is the worst pollutant."""
    series: Mapping[PollutantKind, Sequence[Point]]
    kind: Literal["pollutant_streams"] = "pollutant_streams"


@dataclass(frozen=True)
class CombinedIndexStream:
    """A provider-combined AQI stream with optional concentration streams."""
    index: Sequence[Point]
    pollutants: Mapping[PollutantKind, Sequence[Point]] = field(default_factory=dict)
    kind: Literal["combined_index"] = "combined_index"


ProviderSeries = Union[PollutantStreams, CombinedIndexStream]


@dataclass(frozen=True)
class RealtimeReading:
    """Instantaneous station reading that supersedes the day's aggregate."""
    observed_on: dt.date
    aqi: int
    pollutants: Optional[PollutantReading] = None
    description: str = ""


@dataclass
class _DayAccumulator:
    index: Optional[float] = None
    pollutants: Dict[PollutantKind, float] = field(default_factory=dict)

    def add_index(self, value: float) -> None:
        self.index = value if self.index is None else max(self.index, value)

    def add_pollutant(self, kind: PollutantKind, value: float) -> None:
        current = self.pollutants.get(kind)
        self.pollutants[kind] = value if current is None else max(current, value)


def _to_index(value: float) -> int:
    """Round half up so 54.5 reports as 55 regardless of float parity."""
    return int(math.floor(value + 0.5))


def _as_date(value: dt.date | dt.datetime) -> dt.date:
    return value.date() if isinstance(value, dt.datetime) else value


def daily_from_samples(samples: Iterable[Tuple[dt.date | dt.datetime, Optional[float]]]) -> List[Tuple[dt.date, float]]:
    """Reduce timestamped samples to one (date, daily max) pair per date, skipping None."""
    peaks: Dict[dt.date, float] = {}
    for stamp, value in samples:
        if value is None:
            continue
        day = _as_date(stamp)
        peaks[day] = value if day not in peaks else max(peaks[day], value)
    return sorted(peaks.items())


def _normalize(series: ProviderSeries) -> Dict[dt.date, _DayAccumulator]:
    """Fold either provider shape into one accumulator per date."""
    days: Dict[dt.date, _DayAccumulator] = {}

    def _day(date: dt.date) -> _DayAccumulator:
        return days.setdefault(date, _DayAccumulator())

    if isinstance(series, CombinedIndexStream):
        for date, value in series.index:
            if value is not None:
                _day(_as_date(date)).add_index(value)
        for kind, points in series.pollutants.items():
            for date, value in points:
                if value is not None:
                    _day(_as_date(date)).add_pollutant(kind, value)
        return days

    for kind, points in series.series.items():
        for date, value in points:
            if value is None:
                continue
            acc = _day(_as_date(date))
            acc.add_pollutant(kind, value)
            acc.add_index(value)
    return days


def _build_records(days: Dict[dt.date, _DayAccumulator], description: str) -> List[DailyRecord]:
    records: List[DailyRecord] = []
    for date in sorted(days):
        acc = days[date]
        if acc.index is None:
            # Concentrations without a combined index cannot be ranked on the AQI scale.
            logger.debug("Skipping date without an index value", extra={"date": date.isoformat()})
            continue
        pollutants = PollutantReading.from_mapping(acc.pollutants) if acc.pollutants else None
        records.append(
            make_record(
                date,
                _to_index(acc.index),
                description.replace("{date}", date.isoformat()),
                pollutants,
            )
        )
    return records


def apply_override(
    records: Sequence[DailyRecord],
    override: Optional[RealtimeReading],
    today: Optional[dt.date] = None,
) -> List[DailyRecord]:
    """
    Replace the record for `today` with a real-time reading.

    The override wins on index, status and description. Pollutants it does not
    report are inherited from the aggregated record for that date, else stay
    absent. A reading observed on another date is ignored.
    """
    out = list(records)
    if override is None:
        return out

    today = today or override.observed_on
    if override.observed_on != today:
        logger.info(
            "Ignoring stale real-time reading",
            extra={"observed_on": override.observed_on.isoformat(), "today": today.isoformat()},
        )
        return out

    prior = next((r for r in out if r.date == today), None)
    fallback = prior.pollutants if prior else None
    pollutants = (override.pollutants or PollutantReading()).with_fallback(fallback)
    replacement = make_record(
        today,
        override.aqi,
        override.description or (prior.description if prior else ""),
        None if pollutants.is_empty() else pollutants,
    )

    out = [r for r in out if r.date != today]
    out.append(replacement)
    out.sort(key=lambda r: r.date)
    logger.debug(
        "Applied real-time override",
        extra={"date": today.isoformat(), "aqi": override.aqi, "replaced": prior is not None},
    )
    return out


def aggregate(
    series: ProviderSeries | Mapping[PollutantKind, Sequence[Point]] | None,
    *,
    override: Optional[RealtimeReading] = None,
    today: Optional[dt.date] = None,
    description: str = DEFAULT_DESCRIPTION,
) -> List[DailyRecord]:
    """
    Turn one provider's series into ascending, date-unique DailyRecords.

    A plain mapping is read as per-pollutant streams. `description` is a
    template; `{date}` expands to the ISO date. No input and no override
    yields an empty list.
    """
    if series is None:
        days: Dict[dt.date, _DayAccumulator] = {}
    elif isinstance(series, (PollutantStreams, CombinedIndexStream)):
        days = _normalize(series)
    else:
        days = _normalize(PollutantStreams(series=series))

    records = _build_records(days, description)
    return apply_override(records, override, today)


def merge_records(*sources: Sequence[DailyRecord]) -> List[DailyRecord]:
    """Union several providers' records by date; earlier arguments win on conflicts."""
    by_date: Dict[dt.date, DailyRecord] = {}
    for records in sources:
        for record in records:
            by_date.setdefault(record.date, record)
    return [by_date[date] for date in sorted(by_date)]
