"""Ollama text-generation client.

The only slow dependency of the pipeline.  ``generate`` runs the blocking
HTTP call in a worker thread and bounds it with an explicit timeout, so
many pipelines can await their LLM calls concurrently.

    llm = OllamaClient(base_url="http://localhost:11434", model="llama3.2")
    text = await llm.generate("You are ...", "Classify ...")
"""

from __future__ import annotations
import asyncio
import logging
from typing import Protocol

import requests

from .errors import LLMError, LLMUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"
DEFAULT_TIMEOUT = 60.0


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, prompt: str) -> str: ...


class OllamaClient:
    """Calls ``POST /api/generate`` on an Ollama server."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = 0.1,
        top_p: float = 0.9,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self._session = session or requests.Session()

    def generate_sync(self, system_prompt: str, prompt: str) -> str:
        """Blocking generation call."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "system": system_prompt,
            "stream": False,
            "options": {"temperature": self.temperature, "top_p": self.top_p},
        }
        try:
            resp = self._session.post(
                f"{self.base_url}/api/generate", json=payload, timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.ConnectionError as exc:
            logger.error("Ollama unreachable at %s: %s", self.base_url, exc)
            raise LLMUnavailableError(
                "AI service unavailable. Please ensure Ollama is running."
            ) from exc
        except requests.Timeout as exc:
            logger.error("Ollama request timed out after %ss", self.timeout)
            raise LLMError(f"AI request timed out after {self.timeout:g}s") from exc
        except (requests.RequestException, ValueError) as exc:
            logger.error("Ollama API call failed: %s", exc)
            raise LLMError("Failed to process AI request") from exc

        if not isinstance(data, dict):
            raise LLMError("Failed to process AI request")
        return data.get("response") or ""

    async def generate(self, system_prompt: str, prompt: str) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.generate_sync, system_prompt, prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise LLMError(f"AI request timed out after {self.timeout:g}s") from exc

    def check_health(self) -> bool:
        """True if the server answers ``GET /api/tags``."""
        try:
            resp = self._session.get(f"{self.base_url}/api/tags", timeout=5)
        except requests.RequestException:
            return False
        return resp.status_code == 200
