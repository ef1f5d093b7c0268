"""HTTP API for the AQI forecast and its calendar subscription feed."""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from .calendar_encoder import CALENDAR_CONTENT_TYPE, calendar_filename
from .config import settings
from .domain import Forecast
from .forecast_service import ForecastService, build_forecast_service
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")

router = APIRouter()

_service: Optional[ForecastService] = None


def get_forecast_service() -> ForecastService:
    """
    Build the service on first use.

    Deferred so a missing token surfaces as a ConfigurationError response
    instead of preventing the app from starting.
    """
    global _service
    if _service is None:
        _service = build_forecast_service(settings)
    return _service


def _require_city(city: Optional[str]) -> str:
    if city is None or not city.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="City parameter is required")
    return city.strip()


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback plus the RFC 5987 UTF-8 name."""
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_").replace('"', "")
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/forecast", response_model=Forecast)
def get_forecast(
    city: Optional[str] = Query(default=None),
    service: ForecastService = Depends(get_forecast_service),
):
    """Return the canonical forecast for the interactive page."""
    query = _require_city(city)
    logger.info("Forecast requested", extra={"city": query})
    return service.get_forecast(query)


@router.get("/ics")
def get_calendar(
    city: Optional[str] = Query(default=None),
    service: ForecastService = Depends(get_forecast_service),
):
    """Return the forecast as a calendar subscription document."""
    query = _require_city(city)
    logger.info("Calendar requested", extra={"city": query})
    body = service.get_calendar(query)
    return Response(
        content=body,
        media_type=CALENDAR_CONTENT_TYPE,
        headers={
            "Content-Disposition": content_disposition(calendar_filename(query)),
            "Cache-Control": f"public, max-age={settings.calendar_cache_seconds}",
        },
    )
