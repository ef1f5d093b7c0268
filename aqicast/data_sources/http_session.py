"""Shared HTTP plumbing for provider clients: cached, retrying session plus JSON fetch."""
from __future__ import annotations

from typing import Any, Mapping, Optional

import requests
import requests_cache
from retry_requests import retry

from aqicast.errors import UpstreamUnavailableError
from utils.logging_utils import get_tagged_logger, mask_token_url

logger = get_tagged_logger(__name__, tag="data_sources/http")


def build_session(*, cache_seconds: int = 3600, retries: int = 1) -> requests.Session:
    """
    Return a session that caches responses for `cache_seconds` and retries
    transient failures (connection resets, 5xx) `retries` times.
    """
    cache_session = requests_cache.CachedSession(
        "aqicast_http_cache",
        backend="memory",
        expire_after=cache_seconds,
    )
    logger.debug("Built HTTP session", extra={"cache_seconds": cache_seconds, "retries": retries})
    return retry(cache_session, retries=retries, backoff_factor=0.2)


def request_json(
    session: Any,
    url: str,
    *,
    provider: str,
    params: Optional[Mapping[str, Any]] = None,
    timeout: float = 10.0,
) -> Any:
    """GET `url` and decode JSON, mapping every transport or decode failure to UpstreamUnavailableError."""
    try:
        resp = session.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
    except requests.exceptions.Timeout as exc:
        logger.warning("Provider call timed out", extra={"provider": provider, "url": mask_token_url(url)})
        raise UpstreamUnavailableError(provider, "request timed out") from exc
    except requests.exceptions.RequestException as exc:
        logger.warning(
            "Provider call failed",
            extra={"provider": provider, "url": mask_token_url(url), "error": type(exc).__name__},
        )
        raise UpstreamUnavailableError(provider, type(exc).__name__) from exc

    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamUnavailableError(provider, "response was not valid JSON") from exc
