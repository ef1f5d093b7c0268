"""Thin client for calling the local Ollama chat API."""

import time
from typing import Optional

import requests

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="ollama_client")


class OllamaClient:
    """Minimal client for the Ollama chat API."""
    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "phi4-mini",
        *,
        options: Optional[dict] = None,
        timeout: float = 120.0,
        max_retries: int = 1,
        retry_backoff_sec: float = 0.5,
    ):
        self.url = f"{base_url.rstrip('/')}/api/chat"
        self.model = model
        self.options = options or {}
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff_sec = retry_backoff_sec

    @classmethod
    def from_settings(cls, settings) -> "OllamaClient":
        return cls(
            settings.ollama_base_url,
            settings.ollama_model,
            options=settings.ollama_options,
            timeout=settings.ollama_timeout_seconds,
            max_retries=settings.http_retries,
        )

    def chat(self, messages, *, json_format: bool = False) -> str:
        """Send a chat request and return the assistant content."""
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": self.options,
        }
        if json_format:
            payload["format"] = "json"

        r = None
        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("Ollama POST", extra={"model": self.model, "messages": len(messages)})
                r = requests.post(self.url, json=payload, timeout=self.timeout)
                logger.info(
                    "Ollama POST took %.2fs, status %s",
                    r.elapsed.total_seconds(),
                    r.status_code,
                )
            except requests.exceptions.RequestException as exc:
                logger.warning("Ollama POST failed on attempt %d: %s", attempt + 1, exc)
                if attempt < self.max_retries:
                    time.sleep(self.retry_backoff_sec)
                    continue
                raise RuntimeError(f"Ollama POST failed after retries: {exc}") from exc

            if r.status_code == 200:
                break

            error_text = (r.text or "")[:200]
            if "EOF" in error_text and attempt < self.max_retries:
                logger.warning("Ollama returned EOF; retrying (attempt %d/%d).", attempt + 1, self.max_retries + 1)
                time.sleep(self.retry_backoff_sec)
                continue
            raise RuntimeError(
                f"Ollama POST failed with status {r.status_code}: {error_text} "
                f"(model={self.model}, url={self.url})"
            )

        try:
            data = r.json()
        except ValueError as exc:
            raise RuntimeError(f"Ollama returned non-JSON response: {r.text[:200]}") from exc
        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise RuntimeError(f"Ollama response has no message object: {r.text[:200]}")
        content = message.get("content", "")
        if isinstance(content, (dict, list)):
            content = str(content)
        return content
