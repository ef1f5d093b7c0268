"""Resolve a location, merge provider data and return a 14-day daily AQI forecast."""
from __future__ import annotations

import datetime as dt
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, List, Optional, Sequence, Tuple

from aqicast import config
from aqicast.aggregation import CombinedIndexStream, aggregate, merge_records
from aqicast.calendar_encoder import encode
from aqicast.data_sources.base import AirQualitySeriesSource, ForecastEstimator, LocationResolver, StationFeedSource
from aqicast.data_sources.factory import build_providers
from aqicast.data_sources.open_meteo_client import OPEN_METEO_SOURCE
from aqicast.data_sources.waqi_client import WAQI_SOURCE, StationFeed, StationMatch
from aqicast.domain import DailyRecord, DataQuality, Forecast, Source
from aqicast.errors import AQICastError, NotFoundError, UpstreamUnavailableError
from aqicast.extension import extend
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="forecast_service")

Clock = Callable[[], dt.datetime]


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _unique_sources(sources: Sequence[Source]) -> Tuple[Source, ...]:
    seen = set()
    out: List[Source] = []
    for source in sources:
        if source.uri in seen:
            continue
        seen.add(source.uri)
        out.append(source)
    return tuple(out)


def _contiguous_after(last: Optional[dt.date], records: Sequence[DailyRecord]) -> List[DailyRecord]:
    """Keep the leading run of records that continues day by day after `last`."""
    out: List[DailyRecord] = []
    expected = last + dt.timedelta(days=1) if last else None
    for record in records:
        if expected is not None and record.date != expected:
            break
        out.append(record)
        expected = record.date + dt.timedelta(days=1)
    return out


class ForecastService:
    """
    Orchestrates resolve -> fetch -> aggregate -> (estimate/extend) for one query.

    Holds only collaborators and settings; every call builds a fresh Forecast.
    """

    def __init__(
        self,
        stations: LocationResolver | StationFeedSource,
        *,
        secondary: Optional[AirQualitySeriesSource] = None,
        estimator: Optional[ForecastEstimator] = None,
        horizon_days: int = 14,
        secondary_days: int = 7,
        call_timeout: float = 15.0,
        calendar_host: str = "aqicast.local",
        clock: Optional[Clock] = None,
    ):
        self.stations = stations
        self.secondary = secondary
        self.estimator = estimator
        self.horizon_days = horizon_days
        self.secondary_days = secondary_days
        self.call_timeout = call_timeout
        self.calendar_host = calendar_host
        self.clock = clock or _utc_now

    # ------------------------------------------------------------------
    # fetch
    # ------------------------------------------------------------------

    def _resolve(self, query: str) -> StationMatch:
        matches = self.stations.search(query)
        if not matches:
            raise NotFoundError(
                query,
                f"Could not find air quality data for '{query}'. "
                "Try checking the spelling or adding a country (e.g. 'Shenzhen, China').",
            )
        station = matches[0]
        logger.info("Resolved location", extra={"query": query, "uid": station.uid, "station": station.name})
        return station

    def _fetch(self, station: StationMatch) -> Tuple[StationFeed, Optional[CombinedIndexStream]]:
        """Fetch the station feed and the optional secondary stream concurrently."""
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="aqicast-fetch")
        try:
            feed_future = executor.submit(self.stations.fetch_feed, station)
            secondary_future = None
            if self.secondary is not None and station.latitude is not None and station.longitude is not None:
                secondary_future = executor.submit(
                    self.secondary.fetch_daily, station.latitude, station.longitude, self.secondary_days
                )

            try:
                feed = feed_future.result(timeout=self.call_timeout)
            except FutureTimeout as exc:
                raise UpstreamUnavailableError("waqi", "station feed timed out") from exc

            secondary_stream = None
            if secondary_future is not None:
                try:
                    secondary_stream = secondary_future.result(timeout=self.call_timeout)
                except FutureTimeout:
                    logger.warning("Secondary source timed out; continuing without it", extra={"uid": station.uid})
                except AQICastError as exc:
                    logger.warning(
                        "Secondary source failed; continuing without it",
                        extra={"uid": station.uid, "error": exc.message},
                    )
                except Exception as exc:
                    logger.warning(
                        "Secondary source crashed; continuing without it",
                        extra={"uid": station.uid, "error": type(exc).__name__},
                        exc_info=True,
                    )
            return feed, secondary_stream
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _station_today(self, utc_offset: Optional[dt.timedelta]) -> dt.date:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=dt.timezone.utc)
        if utc_offset is not None:
            return now.astimezone(dt.timezone(utc_offset)).date()
        return now.astimezone(dt.timezone.utc).date()

    # ------------------------------------------------------------------
    # estimation
    # ------------------------------------------------------------------

    def _missing_dates(self, days: Sequence[DailyRecord], today: dt.date) -> List[dt.date]:
        start = days[-1].date + dt.timedelta(days=1) if days else today
        count = self.horizon_days - len(days)
        return [start + dt.timedelta(days=i) for i in range(max(0, count))]

    def _estimate(self, city: str, days: List[DailyRecord], today: dt.date) -> Tuple[List[DailyRecord], List[Source]]:
        """
        Ask the estimator for the trailing dates; failures only disable this path.

        Quality is derived from how many days were measured, never from what
        the model says about its own output.
        """
        if self.estimator is None or len(days) >= self.horizon_days:
            return days, []
        missing = self._missing_dates(days, today)
        try:
            estimate = self.estimator.estimate(city, days, missing)
        except AQICastError as exc:
            logger.warning("Estimator failed; falling back to trend extension", extra={"error": exc.message})
            return days, []
        except Exception as exc:
            logger.warning(
                "Estimator crashed; falling back to trend extension",
                extra={"error": type(exc).__name__},
                exc_info=True,
            )
            return days, []

        last = days[-1].date if days else missing[0] - dt.timedelta(days=1)
        accepted = _contiguous_after(last, estimate.records)
        if not accepted:
            return days, []
        logger.info("Accepted estimated days", extra={"city": city, "estimated_days": len(accepted)})
        return [*days, *accepted], list(estimate.sources)

    # ------------------------------------------------------------------
    # public operations
    # ------------------------------------------------------------------

    def get_forecast(self, query: str) -> Forecast:
        """
        Build the forecast for a free-text location.

        Raises NotFoundError when nothing matches, UpstreamUnavailableError when
        the station provider fails or no data at all is available.
        """
        query = (query or "").strip()
        if not query:
            raise NotFoundError(query, "Location query is empty")

        station = self._resolve(query)
        feed, secondary_stream = self._fetch(station)
        city = feed.station or station.name
        today = self._station_today(feed.utc_offset)

        primary = aggregate(
            feed.streams,
            override=feed.realtime,
            today=today,
            description=f"Daily air quality forecast for {{date}}. Based on {city} station data.",
        )
        sources: List[Source] = [WAQI_SOURCE, *feed.attributions]

        secondary: List[DailyRecord] = []
        if secondary_stream is not None:
            secondary = aggregate(
                secondary_stream,
                description="Daily air quality model forecast for {date}.",
            )
        measured = merge_records(primary, secondary)
        if len(measured) > len(primary):
            sources.append(OPEN_METEO_SOURCE)

        days, estimate_sources = self._estimate(city, measured, today)
        sources.extend(estimate_sources)
        if days and len(days) < self.horizon_days:
            days = extend(days, self.horizon_days, city)

        if not days:
            raise UpstreamUnavailableError("waqi", f"no forecast data available for station '{city}'")

        synthetic = len(days) - len(measured)
        if synthetic == 0:
            quality = DataQuality.MEASURED
        elif measured:
            quality = DataQuality.PARTIALLY_ESTIMATED
        else:
            quality = DataQuality.FULLY_ESTIMATED

        forecast = Forecast(
            city=city,
            country=station.country,
            days=tuple(days),
            sources=_unique_sources(sources),
            quality=quality,
        )
        logger.info(
            "Built forecast",
            extra={
                "city": city,
                "days": len(forecast.days),
                "measured_days": len(measured),
                "quality": quality.value,
            },
        )
        return forecast

    def get_calendar(self, query: str, generated_at: Optional[dt.datetime] = None) -> bytes:
        """Encoded calendar for a location; nothing is encoded if the forecast fails."""
        forecast = self.get_forecast(query)
        return encode(forecast, generated_at or self.clock(), host=self.calendar_host)


def build_forecast_service(settings: config.Settings | None = None) -> ForecastService:
    """Wire the real providers; raises ConfigurationError when credentials are missing."""
    settings = settings or config.settings
    providers = build_providers(settings)
    return ForecastService(
        providers.stations,
        secondary=providers.secondary,
        estimator=providers.estimator,
        horizon_days=settings.forecast_days,
        secondary_days=settings.open_meteo_forecast_days,
        call_timeout=settings.request_timeout_seconds * (settings.http_retries + 1) + 1,
        calendar_host=settings.calendar_host,
    )
