"""Ollama text generation client."""

from __future__ import annotations

import logging

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.1"
SHORT_PROMPT_CHARS = 1200


class GenerationError(RuntimeError):
    """Raised when the generator cannot produce an answer."""


class OllamaGenerator:
    """Thin wrapper around the Ollama ``/api/generate`` endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model_name: str = DEFAULT_MODEL,
        *,
        timeout: float = 600.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.model_name = model_name
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout, connect=30.0),
        )

    def close(self) -> None:
        self._client.close()

    def build_request(self, prompt: str) -> dict:
        num_predict = 512 if len(prompt) < SHORT_PROMPT_CHARS else 2048
        return {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.1,
                "top_p": 0.9,
                "num_predict": num_predict,
                "num_ctx": 8192,
            },
        }

    def generate(self, prompt: str) -> str:
        LOGGER.debug("Generating response using model: %s", self.model_name)
        try:
            response = self._client.post("/api/generate", json=self.build_request(prompt))
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to communicate with Ollama: %s", exc)
            raise GenerationError(f"Failed to generate response: {exc}") from exc

        if response.status_code != 200:
            LOGGER.error("Ollama API error: %s - %s", response.status_code, response.text)
            raise GenerationError(f"Ollama API returned status: {response.status_code}")

        try:
            text = response.json()["response"]
        except (ValueError, KeyError, TypeError) as exc:
            LOGGER.warning("Could not parse Ollama response: %s", response.text)
            raise GenerationError("Malformed response from Ollama") from exc
        return text

    def is_healthy(self) -> bool:
        try:
            response = self._client.get("/api/tags", timeout=10.0)
        except httpx.HTTPError as exc:
            LOGGER.warning("Ollama health check failed: %s", exc)
            return False
        return response.status_code == 200
