"""Fill a short forecast up to the target horizon by continuing its recent trend."""

from __future__ import annotations

import datetime as dt
import math
from typing import List, Sequence

from aqicast.domain import DailyRecord
from aqicast.severity import make_record
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="extension")

TREND_WINDOW = 3
# Fraction of the tail slope carried into each synthetic day; the rest decays.
TREND_DAMPING = 0.5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _tail_trend(tail: Sequence[DailyRecord]) -> tuple[float, float]:
    """Return (baseline, per-day slope) for the last few records."""
    values = [r.aqi for r in tail]
    baseline = sum(values) / len(values)
    if len(values) < 2:
        return baseline, 0.0
    slope = (values[-1] - values[0]) / (len(values) - 1)
    return baseline, slope


def extend(
    authoritative: Sequence[DailyRecord],
    target_length: int,
    city_context: str,
) -> List[DailyRecord]:
    """
    Append synthetic days after the last record until `target_length` is reached.

    Input records are returned unchanged and in order. Synthetic dates are
    contiguous from the day after the last input date. Each synthetic index
    starts from the mean of the last three indices and follows the tail slope
    with geometric damping, so the projection flattens out instead of running
    away. Indices never go below zero.

    Nothing is appended when the input is empty (no trend to continue) or
    already long enough.
    """
    records = list(authoritative)
    missing = target_length - len(records)
    if missing <= 0 or not records:
        return records

    baseline, slope = _tail_trend(records[-TREND_WINDOW:])
    last_date = records[-1].date
    description = f"Estimated from the recent air quality trend for {city_context}."

    level = baseline
    step = slope
    for offset in range(1, missing + 1):
        step *= TREND_DAMPING
        level += step
        records.append(
            make_record(
                last_date + dt.timedelta(days=offset),
                max(0, _round_half_up(level)),
                description,
            )
        )

    logger.info(
        "Extended forecast with synthetic days",
        extra={"city": city_context, "synthetic_days": missing, "baseline": round(baseline, 1)},
    )
    return records


def was_extended(before: Sequence[DailyRecord], after: Sequence[DailyRecord]) -> bool:
    return len(after) > len(before)
