import os

import uvicorn

from aqicast.check_ollama import check_ollama
from aqicast.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def maybe_check_ollama() -> None:
    """
    Run the Ollama preflight only when estimation is enabled. Controlled by:
    - AQICAST_ESTIMATION_ENABLED=true to use the estimator at all
    - AQICAST_SKIP_OLLAMA_CHECK=true to skip the preflight (useful in dev/tests)
    """
    if not settings.estimation_enabled:
        return
    if os.getenv("AQICAST_SKIP_OLLAMA_CHECK", "false").lower() in ("1", "true", "yes"):
        logger.info("Skipping Ollama preflight (AQICAST_SKIP_OLLAMA_CHECK=true)")
        return

    try:
        check_ollama(settings.ollama_base_url, required_models=[settings.ollama_model])
    except SystemExit:
        logger.error("Ollama preflight failed; disable estimation or set AQICAST_SKIP_OLLAMA_CHECK=true.")
        raise


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="aqicast")
    if not settings.waqi_token:
        logger.warning("AQICAST_WAQI_TOKEN is not set; forecast requests will fail with a configuration error.")
    maybe_check_ollama()

    uvicorn.run(
        "aqicast.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
