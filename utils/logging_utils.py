"""
Central logging configuration for the AQI calendar service.

Usage
-----
In an entrypoint (server, one-off script):

    from utils.logging_utils import setup_logging

    def main() -> None:
        setup_logging(level="INFO", job_name="aqicast")
        ...

In a module:

    from utils.logging_utils import get_tagged_logger

    logger = get_tagged_logger(__name__, tag="waqi_client")

    def feed(uid: int) -> None:
        logger.info("Fetching station feed", extra={"uid": uid})

Every record carries `job_name` and `tag` so provider calls, aggregation and
encoding can be told apart in a shared log stream.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Mapping, MutableMapping, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


# Import-time fallback so provider calls logged before setup_logging() still
# show a timestamp and level.
BOOTSTRAP_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
BOOTSTRAP_DATEFMT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(
    level=logging.INFO,
    format=BOOTSTRAP_FORMAT,
    datefmt=BOOTSTRAP_DATEFMT,
)


DEFAULT_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(job_name)s | %(tag)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Query parameter names whose values never reach a log line.
SENSITIVE_QUERY_TOKENS = ("token", "key", "secret", "pass", "pwd")

_CONFIGURED: bool = False


class MaxLevelFilter(logging.Filter):
    """Pass records at or below `max_level`; keeps warnings off stdout."""

    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return record.levelno <= self.max_level


class EnsureTagFilter(logging.Filter):
    """Give third-party records (uvicorn, requests_cache) a `tag` from their logger name."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "tag"):
            logger_name = getattr(record, "name", "")
            record.tag = logger_name.split(".")[-1] if logger_name else "-"
        return True


class JobNameFilter(logging.Filter):
    """Stamp records with the process `job_name` (e.g. "aqicast")."""

    def __init__(self, job_name: Optional[str] = None) -> None:
        super().__init__()
        self._job_name = job_name or "-"

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "job_name"):
            record.job_name = self._job_name
        return True


def build_logging_config(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
) -> Mapping[str, Any]:
    """dictConfig mapping: DEBUG/INFO to stdout, WARNING and above to stderr."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "ensure_tag": {"()": EnsureTagFilter},
            "job_name": {"()": JobNameFilter, "job_name": job_name},
            "below_warning": {
                "()": MaxLevelFilter,
                "max_level": logging.INFO,
            },
        },
        "formatters": {
            "standard": {
                "format": log_format,
                "datefmt": date_format,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["ensure_tag", "job_name", "below_warning"],
                "level": "DEBUG",
                "stream": "ext://sys.stdout",
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["ensure_tag", "job_name"],
                "level": "WARNING",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["stdout", "stderr"],
        },
    }


def setup_logging(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
    override_existing: bool = False,
) -> None:
    """
    Configure process-wide logging once.

    Calling it again is a no-op unless `override_existing` is True.
    """
    global _CONFIGURED

    if _CONFIGURED and not override_existing:
        return

    config_dict = build_logging_config(
        level=level,
        log_format=log_format,
        date_format=date_format,
        job_name=job_name,
    )
    logging.config.dictConfig(config_dict)
    _CONFIGURED = True


class TaggedLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that keeps per-call `extra` fields.

    The stock adapter replaces a call's `extra` with its own mapping, which
    would drop fields such as `uid` or `city`. Here the tag is merged in and
    the call's fields win.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_tagged_logger(
    name: str,
    *,
    tag: Optional[str] = None,
) -> TaggedLoggerAdapter:
    """
    Return an adapter whose records always carry a `tag` field.

    If `tag` is omitted it defaults to the last segment of `name`.
    """
    base_logger = logging.getLogger(name)
    if tag is None:
        tag = name.split(".")[-1]
    return TaggedLoggerAdapter(base_logger, {"tag": tag})


def mask_token_url(url: str) -> str:
    """Return a copy of a provider URL with credential-looking query values masked.

    Examples
    --------
    - https://api.waqi.info/feed/@1437/?token=abc -> https://api.waqi.info/feed/@1437/?token=%2A%2A%2A
    - https://air-quality-api.open-meteo.com/v1/air-quality?latitude=1 -> unchanged
    """
    try:
        parsed = urlparse(url)
    except (TypeError, ValueError):
        return url

    if not parsed.query:
        return url

    masked_pairs = []
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        if any(token in key.lower() for token in SENSITIVE_QUERY_TOKENS):
            masked_pairs.append((key, "***"))
        else:
            masked_pairs.append((key, value))

    return urlunparse(parsed._replace(query=urlencode(masked_pairs)))
