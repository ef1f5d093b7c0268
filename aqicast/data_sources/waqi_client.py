"""Client for the World Air Quality Index project (api.waqi.info): station search and feeds."""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aqicast.aggregation import PollutantStreams, RealtimeReading
from aqicast.domain import PollutantKind, PollutantReading, Source
from aqicast.errors import UpstreamUnavailableError
from aqicast.data_sources.http_session import request_json
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="waqi_client")

PROVIDER = "waqi"
WAQI_SOURCE = Source(title="World Air Quality Index Project (AQICN)", uri="https://aqicn.org/")

# WAQI pollutant keys we understand; anything else (uvi, wind, ...) is ignored.
WAQI_POLLUTANT_KEYS: Dict[str, PollutantKind] = {
    "pm25": PollutantKind.PM2_5,
    "pm10": PollutantKind.PM10,
    "o3": PollutantKind.O3,
    "no2": PollutantKind.NO2,
    "co": PollutantKind.CO,
}

_OFFSET_RE = re.compile(r"^([+-])(\d{1,2}):?(\d{2})$")
# Raised while walking a payload whose shape does not match the documented one.
MALFORMED_PAYLOAD_ERRORS = (AttributeError, TypeError, KeyError, ValueError, OverflowError)


@dataclass
class StationMatch:
    """A station returned by the WAQI keyword search."""
    uid: int
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    country: Optional[str] = None


@dataclass
class StationFeed:
    """Normalized WAQI feed: daily per-pollutant forecast plus the live reading."""
    station: str
    streams: PollutantStreams
    realtime: Optional[RealtimeReading]
    utc_offset: Optional[dt.timedelta] = None
    attributions: List[Source] = field(default_factory=list)


def _number(value: Any) -> Optional[float]:
    """WAQI reports '-' or '' for missing values; only real numbers survive."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def parse_utc_offset(value: Optional[str]) -> Optional[dt.timedelta]:
    """Parse '+08:00' / '-0500' into a timedelta; None when unparseable."""
    if not value:
        return None
    match = _OFFSET_RE.match(value.strip())
    if not match:
        logger.debug("Unrecognized WAQI tz offset", extra={"tz": value})
        return None
    sign, hours, minutes = match.groups()
    delta = dt.timedelta(hours=int(hours), minutes=int(minutes))
    return -delta if sign == "-" else delta


def _observed_on(time_block: Dict[str, Any]) -> Optional[dt.date]:
    stamp = time_block.get("iso") or time_block.get("s")
    if not stamp:
        return None
    try:
        return dt.datetime.fromisoformat(str(stamp)).date()
    except ValueError:
        logger.debug("Unparseable WAQI observation time", extra={"time": stamp})
        return None


def parse_search(payload: Any) -> List[StationMatch]:
    """
    Map a /search/ payload into station matches. A non-ok status means no
    matches; a wrongly shaped ok payload raises UpstreamUnavailableError.
    """
    if not isinstance(payload, dict) or payload.get("status") != "ok":
        return []
    try:
        return _parse_search_data(payload.get("data") or [])
    except MALFORMED_PAYLOAD_ERRORS as exc:
        raise UpstreamUnavailableError(PROVIDER, "malformed search payload") from exc


def _parse_search_data(items: Any) -> List[StationMatch]:
    if not isinstance(items, list):
        raise TypeError(f"expected a list of stations, got {type(items).__name__}")
    matches: List[StationMatch] = []
    for item in items:
        try:
            uid = int(item["uid"])
        except (KeyError, TypeError, ValueError):
            continue
        station = item.get("station") or {}
        geo = station.get("geo") or []
        lat, lon = (geo[0], geo[1]) if len(geo) >= 2 else (None, None)
        matches.append(
            StationMatch(
                uid=uid,
                name=station.get("name") or str(uid),
                latitude=_number(lat),
                longitude=_number(lon),
                country=station.get("country") or None,
            )
        )
    return matches


def parse_feed(payload: Any, *, fallback_name: str = "") -> StationFeed:
    """Map a /feed/ payload into a StationFeed; raises UpstreamUnavailableError when malformed."""
    if not isinstance(payload, dict) or payload.get("status") != "ok":
        detail = payload.get("data") if isinstance(payload, dict) else None
        raise UpstreamUnavailableError(PROVIDER, f"feed status not ok: {detail}")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise UpstreamUnavailableError(PROVIDER, "feed payload has no data block")
    try:
        return _parse_feed_data(data, fallback_name)
    except MALFORMED_PAYLOAD_ERRORS as exc:
        raise UpstreamUnavailableError(PROVIDER, "malformed feed payload") from exc


def _parse_feed_data(data: Dict[str, Any], fallback_name: str) -> StationFeed:
    station = (data.get("city") or {}).get("name") or fallback_name
    if not isinstance(station, str):
        raise TypeError(f"station name is {type(station).__name__}")

    series: Dict[PollutantKind, List] = {}
    daily = ((data.get("forecast") or {}).get("daily")) or {}
    for key, days in daily.items():
        kind = WAQI_POLLUTANT_KEYS.get(key)
        if kind is None:
            continue
        points = []
        for day in days or []:
            try:
                date = dt.date.fromisoformat(day["day"])
            except (KeyError, TypeError, ValueError):
                continue
            points.append((date, _number(day.get("avg"))))
        series[kind] = points

    time_block = data.get("time") or {}
    realtime = None
    current_aqi = _number(data.get("aqi"))
    observed_on = _observed_on(time_block)
    if current_aqi is not None and observed_on is not None:
        iaqi = data.get("iaqi") or {}
        reading = {
            kind: _number((iaqi.get(key) or {}).get("v"))
            for key, kind in WAQI_POLLUTANT_KEYS.items()
        }
        realtime = RealtimeReading(
            observed_on=observed_on,
            aqi=int(round(current_aqi)),
            pollutants=PollutantReading.from_mapping(reading),
            description=f"Current air quality recorded at {station}.",
        )

    attributions = [
        Source(title=a["name"], uri=a["url"])
        for a in data.get("attributions") or []
        if isinstance(a, dict) and a.get("name") and a.get("url")
    ]

    return StationFeed(
        station=station,
        streams=PollutantStreams(series=series),
        realtime=realtime,
        utc_offset=parse_utc_offset(time_block.get("tz")),
        attributions=attributions,
    )


class WaqiClient:
    """Station resolver and feed source backed by api.waqi.info."""

    def __init__(self, session: Any, token: str, *, base_url: str = "https://api.waqi.info", timeout: float = 10.0):
        self.session = session
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def search(self, query: str) -> List[StationMatch]:
        """Return stations matching a free-text location query, best match first."""
        payload = request_json(
            self.session,
            f"{self.base_url}/search/",
            provider=PROVIDER,
            params={"token": self.token, "keyword": query},
            timeout=self.timeout,
        )
        matches = parse_search(payload)
        logger.info("WAQI search", extra={"query": query, "matches": len(matches)})
        return matches

    def fetch_feed(self, station: StationMatch) -> StationFeed:
        """Return the daily forecast and live reading for a station."""
        payload = request_json(
            self.session,
            f"{self.base_url}/feed/@{station.uid}/",
            provider=PROVIDER,
            params={"token": self.token},
            timeout=self.timeout,
        )
        feed = parse_feed(payload, fallback_name=station.name)
        logger.info(
            "WAQI feed",
            extra={
                "uid": station.uid,
                "pollutants": sorted(k.value for k in feed.streams.series),
                "has_realtime": feed.realtime is not None,
            },
        )
        return feed
