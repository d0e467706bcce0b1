"""Chat-completion client shared by enrichment and credibility scoring."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from openai import OpenAI, OpenAIError

from ..config import AIConfig

logger = logging.getLogger(__name__)

__all__ = ["AICallError", "AICompletionClient", "build_ai_client"]

LOCAL_API_KEY = "lm-studio"


class AICallError(RuntimeError):
    """Raised when a completion request fails for any reason."""


class AICompletionClient:
    """Thin wrapper over the OpenAI SDK for hosted or local OpenAI-compatible servers.

    The underlying :class:`openai.OpenAI` client is created on first use.
    """

    def __init__(
        self,
        config: AIConfig,
        *,
        client_factory: Callable[..., OpenAI] = OpenAI,
        temperature: float = 0.3,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._temperature = temperature
        self._client: OpenAI | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> AIConfig:
        return self._config

    @property
    def default_model(self) -> str:
        return self._config.resolved_model

    def _initialise_client(self) -> OpenAI:
        if self._config.is_local:
            base_url = self._config.resolved_base_url
            logger.info("Using local model server at %s", base_url)
            return self._client_factory(base_url=base_url, api_key=self._config.api_key or LOCAL_API_KEY)
        logger.info("Using OpenAI API with model %s", self._config.model)
        return self._client_factory(api_key=self._config.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    try:
                        self._client = self._initialise_client()
                    except Exception as exc:  # noqa: BLE001 - surfaced as AICallError
                        raise AICallError(
                            "Failed to initialise the OpenAI client. Ensure OPENAI_API_KEY or a local "
                            "model server is configured."
                        ) from exc
        return self._client

    def complete(self, prompt: str, *, model: str | None = None, max_tokens: int = 1024) -> str:
        """Send ``prompt`` as a single user message and return the reply text."""

        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=model or self.default_model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=self._temperature,
            )
        except OpenAIError as exc:
            raise AICallError(f"Completion request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise AICallError("Completion response did not contain a message") from exc
        return (content or "").strip()


def build_ai_client(config: AIConfig) -> AICompletionClient | None:
    """Return a client when an AI backend is configured, otherwise ``None``."""

    if not config.is_configured:
        logger.warning("No AI backend configured; enrichment and credibility run in degraded mode")
        return None
    return AICompletionClient(config)
