"""FastAPI application setup and error mapping for AQICast."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import router as api_router
from .check_ollama import get_ollama_status
from .config import settings
from .errors import AQICastError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="main")

app = FastAPI(title="AQICast")


@app.exception_handler(AQICastError)
async def handle_aqicast_error(request: Request, exc: AQICastError):
    """Render core errors as a consistent JSON body with their status code."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request failed [%s]: %s",
        exc.error_code,
        exc.message,
        extra={"path": request.url.path, "details": exc.details},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "message": exc.message},
    )


@app.get("/health")
def health():
    """Liveness, plus the estimator status when estimation is enabled."""
    body = {"status": "ok"}
    if settings.estimation_enabled:
        status = get_ollama_status(settings.ollama_base_url, required_models=[settings.ollama_model])
        body["estimator"] = {"ok": status["ok"], "error": status["error"]}
    return body


# API routes
app.include_router(api_router, prefix="/v1")
