"""Async OpenAI vision transport with retry, rate limiting and singleton semantics."""
from __future__ import annotations

import asyncio
from typing import Any, Protocol

import openai  # type: ignore

from ..core.config import config
from ..core.errors import OracleTransportError
from ..core.logger import log
from ..core.rate_limiter import RateLimiter, get_rate_limiter
from ..utils.helpers import retry_with_backoff
from .prompt_builder import build_messages

__all__ = ["OracleTransport", "OpenAIVisionTransport", "get_openai_transport"]

# Vision-capable models
VISION_MODELS = [
    "gpt-4-vision-preview",
    "gpt-4o",
    "gpt-4o-mini",
]

_TRANSIENT_ERRORS = (
    openai.APIError,
    openai.RateLimitError,
    asyncio.TimeoutError,
)


class OracleTransport(Protocol):
    """Anything that can answer ``describe_elements(image, prompt) -> raw text``."""

    async def describe_elements(self, image_b64: str, prompt: str) -> str:
        ...


class OpenAIVisionTransport:
    """Lightweight async wrapper around the OpenAI chat completion API for images."""

    _instance: OpenAIVisionTransport | None = None

    @classmethod
    def instance(cls) -> OpenAIVisionTransport:
        """Return the singleton instance, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self, limiter: RateLimiter | None = None) -> None:
        """Initialize settings; the SDK client is created lazily on first call."""
        self._client: openai.AsyncOpenAI | None = None
        self._limiter = limiter or get_rate_limiter()

        self.model = config.openai_model
        self.temperature = float(config.openai_temperature)
        self.max_tokens = int(config.openai_max_tokens)
        self.detail = config.openai_image_detail
        self.timeout = float(config.oracle_timeout_seconds)

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            config.validate_oracle_config()
            self._client = openai.AsyncOpenAI(api_key=config.openai_api_key, timeout=self.timeout)
        return self._client

    def _vision_model(self) -> str:
        if self.model in VISION_MODELS:
            return self.model
        log.info("Switching to vision-capable model: gpt-4o")
        return "gpt-4o"

    async def _complete(self, messages: list[dict[str, Any]]) -> str:
        client = self._get_client()
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=self._vision_model(),
                messages=messages,  # type: ignore[arg-type]
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            ),
            timeout=self.timeout,
        )
        content = response.choices[0].message.content  # type: ignore[attr-defined]
        if content is None:
            raise OracleTransportError("OpenAI returned empty content")
        return content

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    async def describe_elements(self, image_b64: str, prompt: str) -> str:
        """Send *prompt* with the image and return the raw assistant reply.

        Transient failures are retried with exponential backoff; the final
        failure surfaces as :class:`OracleTransportError`.
        """
        messages = build_messages(prompt, image_b64, detail=self.detail)
        attempts = config.oracle_max_retries + 1

        async def _limited() -> str:
            return await self._limiter.run(lambda: self._complete(messages))

        try:
            return await retry_with_backoff(
                _limited,
                max_retries=config.oracle_max_retries,
                base_delay=config.oracle_backoff_seconds,
                exceptions=_TRANSIENT_ERRORS,
            )
        except _TRANSIENT_ERRORS as exc:
            log.error(f"OpenAI request failed after {attempts} attempts: {exc}")
            raise OracleTransportError(f"Oracle request failed: {exc}", attempts=attempts) from exc


# Convenience getter
get_openai_transport = OpenAIVisionTransport.instance
