"""Serialize a forecast into an iCalendar (RFC 5545) subscription document.

Every record becomes one all-day, transparent VEVENT. Output is a pure
function of (forecast, generated_at, host): no randomness, no locale-aware
formatting, no clock reads.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from aqicast.domain import DailyRecord, Forecast, PollutantReading
from aqicast.errors import EncodingError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="calendar_encoder")

CALENDAR_CONTENT_TYPE = "text/calendar; charset=utf-8"
DEFAULT_HOST = "aqicast.local"
PRODUCT_ID = "-//AQICast//AQI Forecast//EN"
REFRESH_INTERVAL = "PT1H"
POLLUTANT_SEPARATOR = ", "
MAX_LINE_OCTETS = 75

CRLF = "\r\n"
_WHITESPACE = re.compile(r"\s+")


def escape_text(value: str) -> str:
    """Escape a TEXT property value (backslash, semicolon, comma, newline)."""
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def fold_line(line: str) -> List[str]:
    """Split a content line into <=75-octet pieces without breaking UTF-8 sequences."""
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return [line]

    pieces: List[str] = []
    current = ""
    current_octets = 0
    limit = MAX_LINE_OCTETS
    for char in line:
        width = len(char.encode("utf-8"))
        if current_octets + width > limit:
            pieces.append(current)
            current, current_octets = "", 0
            # continuation lines start with a space, which counts toward the limit
            limit = MAX_LINE_OCTETS - 1
        current += char
        current_octets += width
    pieces.append(current)
    return [pieces[0], *(" " + piece for piece in pieces[1:])]


def format_value(value: float) -> str:
    """Render a concentration without locale and without a trailing '.0'."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def pollutant_summary(pollutants: Optional[PollutantReading]) -> str:
    """`PM2.5: 12, O3: 55` for present, non-zero values; empty when none qualify."""
    if pollutants is None:
        return ""
    parts = [
        f"{kind.display_name}: {format_value(value)}"
        for kind, value in pollutants.present()
        if value != 0
    ]
    return POLLUTANT_SEPARATOR.join(parts)


def calendar_filename(city: str) -> str:
    """Suggested download name: whitespace runs in the city become hyphens."""
    slug = _WHITESPACE.sub("-", city.strip())
    return f"aqi-{slug}.ics"


def _utc_stamp(generated_at: dt.datetime) -> str:
    if generated_at.tzinfo is not None:
        generated_at = generated_at.astimezone(dt.timezone.utc)
    return generated_at.strftime("%Y%m%dT%H%M%SZ")


@dataclass(frozen=True)
class CalendarEvent:
    """One all-day event block."""
    uid: str
    stamp: str
    date: dt.date
    summary: str
    description: str

    def lines(self) -> List[str]:
        end = self.date + dt.timedelta(days=1)
        return [
            "BEGIN:VEVENT",
            f"UID:{self.uid}",
            f"DTSTAMP:{self.stamp}",
            f"DTSTART;VALUE=DATE:{self.date.strftime('%Y%m%d')}",
            f"DTEND;VALUE=DATE:{end.strftime('%Y%m%d')}",
            f"SUMMARY:{escape_text(self.summary)}",
            f"DESCRIPTION:{escape_text(self.description)}",
            "STATUS:CONFIRMED",
            "TRANSP:TRANSPARENT",
            "END:VEVENT",
        ]


@dataclass(frozen=True)
class CalendarDocument:
    """Calendar name plus its event blocks, in record order."""
    name: str
    events: List[CalendarEvent] = field(default_factory=list)

    def lines(self) -> List[str]:
        out = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{PRODUCT_ID}",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
            f"X-WR-CALNAME:{escape_text(self.name)}",
            "X-WR-TIMEZONE:UTC",
            f"REFRESH-INTERVAL;VALUE=DURATION:{REFRESH_INTERVAL}",
            f"X-PUBLISHED-TTL:{REFRESH_INTERVAL}",
        ]
        for event in self.events:
            out.extend(event.lines())
        out.append("END:VCALENDAR")
        return out

    def serialize(self) -> bytes:
        folded: List[str] = []
        for line in self.lines():
            folded.extend(fold_line(line))
        return (CRLF.join(folded) + CRLF).encode("utf-8")


def _check_dates(records: Sequence[DailyRecord]) -> None:
    seen = set()
    previous: Optional[dt.date] = None
    for record in records:
        if record.date in seen:
            raise EncodingError("duplicate date in forecast", date=record.date.isoformat())
        if previous is not None and record.date < previous:
            raise EncodingError("forecast dates are not in ascending order", date=record.date.isoformat())
        seen.add(record.date)
        previous = record.date


def _event_description(city: str, record: DailyRecord) -> str:
    text = f"Forecast for {city}. Status: {record.status.value}. {record.description}".rstrip()
    summary = pollutant_summary(record.pollutants)
    if summary:
        text += f"\nPollutants (µg/m³): {summary}"
    return text


def build_document(
    city: str,
    records: Sequence[DailyRecord],
    generated_at: dt.datetime,
    *,
    host: str = DEFAULT_HOST,
) -> CalendarDocument:
    """Build the event blocks for `records`; raises EncodingError on bad date order."""
    _check_dates(records)
    stamp = _utc_stamp(generated_at)
    events = [
        CalendarEvent(
            uid=f"{stamp}-{index}@{host}",
            stamp=stamp,
            date=record.date,
            summary=f"{record.marker.value} AQI: {record.aqi} ({record.status.value})",
            description=_event_description(city, record),
        )
        for index, record in enumerate(records)
    ]
    return CalendarDocument(name=f"AQI Forecast - {city}", events=events)


def encode_records(
    city: str,
    records: Sequence[DailyRecord],
    generated_at: dt.datetime,
    *,
    host: str = DEFAULT_HOST,
) -> bytes:
    document = build_document(city, records, generated_at, host=host)
    logger.debug("Encoded calendar", extra={"city": city, "events": len(document.events)})
    return document.serialize()


def encode(forecast: Forecast, generated_at: dt.datetime, *, host: str = DEFAULT_HOST) -> bytes:
    """Encode a forecast as UTF-8 iCalendar bytes. Naive `generated_at` is read as UTC."""
    return encode_records(forecast.city, forecast.days, generated_at, host=host)
