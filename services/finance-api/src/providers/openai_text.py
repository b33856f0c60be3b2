"""
OpenAI-powered text provider.

Sends a single user prompt through the chat completions API and returns the
raw message content. SDK-level retries are disabled; the resolver owns the one
retry that is allowed on overload.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import APIError, APIStatusError, APITimeoutError, OpenAI
from shared.observability.privacy import hash_payload

from text_provider import AIConfigurationError, AIOverloadedError, AIRequestError

logger = logging.getLogger(__name__)

OVERLOADED_STATUS_CODE = 503


class OpenAITextProvider:
    """ChatGPT-backed implementation of the TextGenerator protocol."""

    name = "openai"

    def __init__(self, settings: Any | None = None):
        self._settings = settings
        if settings and settings.openai:
            self._client = OpenAI(
                api_key=settings.openai.api_key,
                base_url=settings.openai.api_base,
                timeout=settings.timeout_seconds,
                max_retries=0,
            )
            self._model = settings.openai.model
            self._temperature = settings.temperature
            self._max_tokens = settings.max_output_tokens
        else:
            self._client = None
            self._model = None
            self._temperature = 0.2
            self._max_tokens = 1024

    def generate(self, prompt: str) -> str:
        if not self._client:
            raise AIConfigurationError("OpenAI client not configured. Check OPENAI_API_KEY.")

        prompt_hash = hash_payload(prompt)
        logger.info(
            {
                "event": "openai_text_request",
                "provider": self.name,
                "model": self._model,
                "prompt_hash": prompt_hash,
            }
        )

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except APIStatusError as exc:
            self._log_error(exc, status_code=exc.status_code)
            if exc.status_code == OVERLOADED_STATUS_CODE:
                raise AIOverloadedError("AI service is overloaded") from exc
            raise AIRequestError(f"AI request failed with status {exc.status_code}") from exc
        except (APIError, APITimeoutError) as exc:
            self._log_error(exc)
            raise AIRequestError("AI request failed") from exc

        choices = response.choices or []
        content = choices[0].message.content if choices else None
        logger.info(
            {
                "event": "openai_text_response",
                "provider": self.name,
                "prompt_hash": prompt_hash,
                "response_hash": hash_payload(content),
            }
        )
        return content or ""

    def _log_error(self, exc: Exception, *, status_code: int | None = None) -> None:
        logger.error(
            {
                "event": "openai_text_error",
                "provider": self.name,
                "error_type": type(exc).__name__,
                "status_code": status_code,
                "error_message": str(exc),
            }
        )
