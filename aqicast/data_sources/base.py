"""Interfaces and helpers for forecast data sources."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Callable, List, Protocol, Sequence

from aqicast.aggregation import CombinedIndexStream
from aqicast.domain import DailyRecord, Source
from aqicast.data_sources.waqi_client import StationFeed, StationMatch


class LocationResolver(Protocol):
    """Anything that can turn a free-text location into candidate stations."""

    def search(self, query: str) -> List[StationMatch]:
        """Return matching stations, best match first; empty when nothing matches."""
        ...


class StationFeedSource(Protocol):
    """Primary, station-based daily forecast plus live reading."""

    def fetch_feed(self, station: StationMatch) -> StationFeed:
        """Return the normalized feed for a resolved station."""
        ...


class AirQualitySeriesSource(Protocol):
    """Secondary, coordinate-based forecast with a provider-combined index."""

    def fetch_daily(self, latitude: float, longitude: float, days: int = 7) -> CombinedIndexStream:
        """Return daily index/pollutant streams for a coordinate pair."""
        ...


@dataclass
class Estimate:
    """Records produced by an estimation model, with its attribution."""
    records: List[DailyRecord] = field(default_factory=list)
    sources: List[Source] = field(default_factory=list)


class ForecastEstimator(Protocol):
    """Optional model that fills dates no sensor-backed source covers."""

    def estimate(self, city: str, known: Sequence[DailyRecord], missing_dates: Sequence[dt.date]) -> Estimate:
        """Return estimated records for (a subset of) `missing_dates`."""
        ...


@dataclass
class CallableStationSource(LocationResolver, StationFeedSource):
    """Wrap search/feed callables so they can be swapped for different backends."""

    search_fn: Callable[[str], List[StationMatch]]
    feed_fn: Callable[[StationMatch], StationFeed]

    def search(self, query: str) -> List[StationMatch]:
        """Delegate to the configured search callable."""
        return self.search_fn(query)

    def fetch_feed(self, station: StationMatch) -> StationFeed:
        """Delegate to the configured feed callable."""
        return self.feed_fn(station)
