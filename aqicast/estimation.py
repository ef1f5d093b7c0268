"""LLM estimation of forecast days that no sensor-backed source covers.

The model only fills dates we ask for. Indices it returns are re-classified
locally, so its own status labels never reach the calendar.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aqicast.data_sources.base import Estimate
from aqicast.domain import DailyRecord, PollutantReading, Source
from aqicast.errors import UpstreamUnavailableError
from aqicast.ollama_client import OllamaClient
from aqicast.severity import make_record
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="estimation")

PROVIDER = "ollama"

SYSTEM_PROMPT_ESTIMATE = """You are an air quality forecaster. You extend a measured daily AQI forecast
(US EPA scale) for a city by estimating the requested future dates from the measured trend,
the season and typical patterns for that city.

Respond with JSON only, no prose and no Markdown, shaped exactly like:
{"city": str, "country": str,
 "forecast": [{"date": "YYYY-MM-DD", "aqi": number, "description": str,
               "pollutants": {"pm2_5": number, "pm10": number, "o3": number, "no2": number, "co": number}}]}
- Return one entry per requested date and no other dates.
- Pollutant concentrations are in µg/m³; omit a pollutant rather than guessing zero.
- Keep each description to one short sentence."""


class _LooseModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class EstimatedPollutants(_LooseModel):
    pm2_5: float | None = None
    pm10: float | None = None
    o3: float | None = None
    no2: float | None = None
    co: float | None = None


class EstimatedDay(_LooseModel):
    date: dt.date
    aqi: float
    description: str = ""
    pollutants: EstimatedPollutants | None = None


class EstimatePayload(_LooseModel):
    """Shape the model is asked to return."""
    city: str | None = None
    country: str | None = None
    forecast: List[EstimatedDay] = Field(default_factory=list)


def _strip_markdown_fences(text: str) -> str:
    """Remove surrounding Markdown code fences from text."""
    if not text:
        return text
    t = text.strip()
    if not t.startswith("```"):
        return t
    lines = t.splitlines()
    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def build_estimation_messages(
    city: str,
    known: Sequence[DailyRecord],
    missing_dates: Sequence[dt.date],
) -> list[dict]:
    """Prepare system+user messages describing measured days and the dates to estimate."""
    lines: list[str] = [f"City: {city}"]
    if known:
        lines.append("Measured daily AQI:")
        for record in known:
            lines.append(f"- {record.date.isoformat()}: {record.aqi} ({record.status.value})")
    else:
        lines.append("No measured data is available.")
    lines.append("Estimate these dates: " + ", ".join(d.isoformat() for d in missing_dates))
    return [
        {"role": "system", "content": SYSTEM_PROMPT_ESTIMATE},
        {"role": "user", "content": "\n".join(lines)},
    ]


def parse_estimate_output(
    raw_text: str,
    missing_dates: Sequence[dt.date],
    *,
    city: str,
) -> tuple[List[DailyRecord], EstimatePayload]:
    """
    Validate model output and keep one record per requested date.

    Raises ValueError when the output is not JSON or does not match the schema.
    Dates that were not requested are dropped; the first entry wins for a
    repeated date.
    """
    text = _strip_markdown_fences(raw_text or "")
    try:
        payload = EstimatePayload.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"Estimate output did not match schema: {exc}") from exc

    wanted = set(missing_dates)
    by_date: Dict[dt.date, DailyRecord] = {}
    for day in payload.forecast:
        if day.date not in wanted or day.date in by_date:
            continue
        pollutants: Optional[PollutantReading] = None
        if day.pollutants is not None:
            pollutants = PollutantReading(**day.pollutants.model_dump())
            if pollutants.is_empty():
                pollutants = None
        by_date[day.date] = make_record(
            day.date,
            max(0, int(round(day.aqi))),
            day.description or f"Estimated air quality for {city}.",
            pollutants,
        )
    return [by_date[d] for d in sorted(by_date)], payload


class OllamaEstimator:
    """ForecastEstimator backed by a local Ollama chat model."""

    def __init__(self, client: OllamaClient):
        self.client = client

    def estimate(self, city: str, known: Sequence[DailyRecord], missing_dates: Sequence[dt.date]) -> Estimate:
        if not missing_dates:
            return Estimate()
        messages = build_estimation_messages(city, known, missing_dates)
        logger.debug(
            "Requesting estimate",
            extra={"city": city, "known_days": len(known), "missing_days": len(missing_dates)},
        )
        try:
            raw = self.client.chat(messages, json_format=True)
            records, payload = parse_estimate_output(raw, missing_dates, city=city)
        except (RuntimeError, ValueError) as exc:
            raise UpstreamUnavailableError(PROVIDER, str(exc)) from exc

        logger.info("Estimated forecast days", extra={"city": city, "estimated_days": len(records)})
        return Estimate(
            records=records,
            sources=[Source(title=f"Ollama model estimate ({self.client.model})", uri="https://ollama.com/")],
        )
