from __future__ import annotations

"""
Provider abstraction for the external text model.

Both the chatbot fallback and the AI receipt analyzer send a single prompt and
read back raw text. Keeping that boundary as a tiny protocol lets the routes
swap the OpenAI implementation for a fixture-driven mock in tests or offline
demos without touching prompt construction or response parsing.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from shared.observability.privacy import hash_payload
from shared.provider_settings import ProviderSettings, ProviderSettingsError, load_provider_settings

logger = logging.getLogger(__name__)

PROVIDER_ENV = "AI_PROVIDER"
TIMEOUT_ENV = "AI_PROVIDER_TIMEOUT_SECONDS"
TEMPERATURE_ENV = "AI_PROVIDER_TEMPERATURE"
MAX_TOKENS_ENV = "AI_PROVIDER_MAX_TOKENS"
FIXTURE_ENV = "AI_PROVIDER_FIXTURE"


class AIServiceError(RuntimeError):
    """Base class for failures talking to the external text model."""


class AIConfigurationError(AIServiceError):
    """No usable credential or provider configuration; never retried."""


class AIOverloadedError(AIServiceError):
    """The model reported a transient overload (HTTP 503)."""


class AIRequestError(AIServiceError):
    """The request failed or produced an empty response."""


class AIResponseFormatError(AIServiceError):
    """The model answered, but not in the shape the caller requires."""


@runtime_checkable
class TextGenerator(Protocol):
    """
    Interface for swappable text models.

    Implementations expose a descriptive `name` and a `generate` method that
    returns the model's raw text for a single prompt.
    """

    name: str

    def generate(self, prompt: str) -> str:
        """Send `prompt` to the model and return its text output."""
        ...


class MockTextProvider:
    """
    Fixture-driven provider suitable for tests or offline demos.

    The fixture holds ordered `rules` (`{"match": substring, "response": text}`)
    and a `default` response; the first rule whose substring appears in the
    prompt decides the output.
    """

    name = "mock"

    def __init__(self, fixture_path: str | Path | None = None):
        candidate = fixture_path or os.getenv(FIXTURE_ENV)
        if candidate is None:
            candidate = _default_fixture_path()

        self._fixture_path = Path(candidate)
        if not self._fixture_path.exists():
            raise FileNotFoundError(f"Mock text provider fixture not found at {self._fixture_path}")

    def generate(self, prompt: str) -> str:
        payload = self._load_fixture()
        rules: List[Dict[str, Any]] = payload.get("rules", [])
        response = payload.get("default", "")
        for rule in rules:
            if rule.get("match") and rule["match"] in prompt:
                response = rule.get("response", "")
                break

        logger.info(
            {
                "event": "mock_text_provider_output",
                "provider": self.name,
                "prompt_hash": hash_payload(prompt),
                "response_hash": hash_payload(response),
            }
        )
        return response

    def _load_fixture(self) -> Dict[str, Any]:
        try:
            return json.loads(self._fixture_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Mock text provider fixture is not valid JSON: {self._fixture_path}") from exc


def strip_code_fences(text: str) -> str:
    """Remove markdown ``` / ```json fences the model sometimes wraps JSON in."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned.replace("```json\n", "").replace("```json", "")
        cleaned = cleaned.replace("```\n", "").replace("```", "")
    elif cleaned.startswith("```"):
        cleaned = cleaned.replace("```\n", "").replace("```", "")
    return cleaned.strip()


def _default_fixture_path() -> Path:
    service_root = Path(__file__).resolve().parents[1]
    return service_root / "tests" / "fixtures" / "mock_text_provider.json"


def build_text_generator(name: str | None, *, settings: Optional[ProviderSettings] = None) -> TextGenerator:
    """Factory that instantiates the requested text provider implementation."""

    normalized = (name or "").strip().lower()
    if normalized == "mock":
        return MockTextProvider()
    if normalized == "openai":
        from providers.openai_text import OpenAITextProvider

        return OpenAITextProvider(settings=settings)

    raise ValueError(f"Unsupported text provider '{name}'")


def load_text_generator() -> TextGenerator:
    """
    Build the configured provider from the environment.

    Called per AI request so that a missing credential only fails the AI-backed
    paths; configuration problems surface as `AIConfigurationError`.
    """

    try:
        settings = load_provider_settings(
            provider_env=PROVIDER_ENV,
            timeout_env=TIMEOUT_ENV,
            temperature_env=TEMPERATURE_ENV,
            max_tokens_env=MAX_TOKENS_ENV,
        )
    except ProviderSettingsError as exc:
        raise AIConfigurationError(str(exc)) from exc

    return build_text_generator(settings.provider_name, settings=settings)
