"""Application configuration pulled from environment variables via pydantic."""
import os
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the AQI calendar service."""
    model_config = SettingsConfigDict(env_prefix="AQICAST_", extra="ignore")

    waqi_token: str | None = None
    waqi_base_url: str = "https://api.waqi.info"
    open_meteo_enabled: bool = True
    open_meteo_air_url: str = "https://air-quality-api.open-meteo.com/v1/air-quality"
    open_meteo_forecast_days: int = 7
    estimation_enabled: bool = False
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "phi4-mini"
    ollama_timeout_seconds: float = 120.0
    forecast_days: int = 14
    request_timeout_seconds: float = 10.0
    http_cache_seconds: int = 3600
    http_retries: int = 1
    calendar_host: str = "aqicast.local"
    calendar_cache_seconds: int = 3600
    ollama_options: dict = Field(
        default_factory=lambda: {
            "temperature": float(os.getenv("AQICAST_OLLAMA_TEMPERATURE", 0.1)),
            "top_p": float(os.getenv("AQICAST_OLLAMA_TOP_P", 0.9)),
        }
    )

    @field_validator("waqi_base_url", "ollama_base_url", "open_meteo_air_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("waqi_token", mode="after")
    @classmethod
    def blank_token_is_missing(cls, v: str | None) -> str | None:
        """Treat an empty or whitespace-only token as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'waqi_token'})}")
