"""Reachability and model checks for the Ollama server used by the estimator."""

import sys
from typing import Any, Dict, Iterable, Optional

import requests

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="check_ollama")


def _tags_url(base_url: str) -> str:
    """Return the Ollama tags endpoint URL."""
    return f"{base_url.rstrip('/')}/api/tags"


def _installed_model_names(tags_json: dict) -> set[str]:
    """Extract model names (including base names without a tag) from tags JSON."""
    names: set[str] = set()
    for m in tags_json.get("models", []):
        name = m.get("name")
        if not name:
            continue
        names.add(name)
        names.add(name.split(":")[0])
    return names


def get_ollama_status(base_url: str, required_models: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    Non-fatal check of Ollama, suitable for health checks.

    Returns a dict with keys ok, reachable, base_url, installed_models,
    required_models, missing_models, models_ok and error.
    """
    required_models = list(required_models or [])
    status: Dict[str, Any] = {
        "ok": False,
        "reachable": False,
        "base_url": base_url,
        "installed_models": [],
        "required_models": required_models,
        "missing_models": [],
        "models_ok": False,
        "error": None,
    }

    try:
        resp = requests.get(_tags_url(base_url), timeout=3)
        resp.raise_for_status()
        tags = resp.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        status["error"] = str(e)
        return status

    status["reachable"] = True
    installed = _installed_model_names(tags)
    status["installed_models"] = sorted(installed)

    missing = [m for m in required_models if m not in installed]
    status["missing_models"] = missing
    status["models_ok"] = not missing
    status["ok"] = status["models_ok"]
    return status


def check_ollama(base_url: str, required_models: Optional[Iterable[str]] = None) -> None:
    """
    Startup check: exit(1) if Ollama is unreachable or required models are missing.

    Only used when estimation is enabled; the station data path never needs it.
    """
    status = get_ollama_status(base_url, required_models=required_models)

    if not status["reachable"]:
        logger.error(
            "Ollama does not appear to be running at %s (%s). Start it or set AQICAST_ESTIMATION_ENABLED=false.",
            _tags_url(base_url),
            status["error"],
        )
        sys.exit(1)

    if status["missing_models"]:
        for m in status["missing_models"]:
            logger.error("Required Ollama model not installed: %s (run: ollama pull %s)", m, m)
        sys.exit(1)

    logger.info("Ollama reachable at %s", base_url)
