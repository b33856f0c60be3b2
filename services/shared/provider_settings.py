from __future__ import annotations

"""
Shared helpers for configuring the pluggable AI text provider.

The chatbot fallback and the AI receipt analyzer both talk to the same external
model. Loading and validating those settings in one place ensures that every
call receives consistent timeouts, temperature, and token limits without
duplicating parsing logic. Settings are loaded lazily (per AI call) so that a
missing credential only breaks the AI-backed routes, not the whole service.
"""

import os
from dataclasses import dataclass
from typing import Optional

SUPPORTED_PROVIDERS = frozenset({"mock", "openai"})
REQUIRED_OPENAI_ENV_VARS = ("OPENAI_API_KEY",)
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_API_BASE = "https://api.openai.com/v1"


class ProviderSettingsError(RuntimeError):
    """Raised when provider configuration cannot be constructed."""


@dataclass(frozen=True, slots=True)
class OpenAIConfig:
    api_key: str
    model: str
    api_base: str


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    provider_name: str
    timeout_seconds: float
    temperature: float
    max_output_tokens: int
    openai: Optional[OpenAIConfig] = None


def load_provider_settings(
    *,
    provider_env: str,
    timeout_env: str,
    temperature_env: str,
    max_tokens_env: str,
    default_provider: str = "openai",
    default_timeout: float = 60.0,
    default_temperature: float = 0.2,
    default_max_tokens: int = 1024,
) -> ProviderSettings:
    """
    Construct ProviderSettings for the AI text provider.

    Args:
        provider_env: Env var that selects the provider implementation.
        timeout_env: Env var that overrides outbound request timeouts.
        temperature_env: Env var that tunes generation randomness.
        max_tokens_env: Env var that caps model responses.
        default_*: Fallback values when the env var is unset/empty.

    Raises:
        ProviderSettingsError: the provider is unknown, a numeric override is
            malformed, or the OpenAI credential is missing.
    """

    provider_name = _normalize_provider(os.getenv(provider_env, default_provider), default_provider)
    timeout_seconds = _parse_float(os.getenv(timeout_env), default_timeout, timeout_env)
    temperature = _parse_float(os.getenv(temperature_env), default_temperature, temperature_env)
    max_output_tokens = _parse_int(os.getenv(max_tokens_env), default_max_tokens, max_tokens_env)

    openai_config: Optional[OpenAIConfig] = None
    if provider_name == "openai":
        openai_config = _build_openai_config(provider_env)

    return ProviderSettings(
        provider_name=provider_name,
        timeout_seconds=timeout_seconds,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        openai=openai_config,
    )


def _normalize_provider(raw_value: Optional[str], default_provider: str) -> str:
    candidate = (raw_value or "").strip().lower()
    if not candidate:
        candidate = default_provider

    if candidate not in SUPPORTED_PROVIDERS:
        raise ProviderSettingsError(f"Unsupported provider '{candidate}'")
    return candidate


def _parse_float(raw_value: Optional[str], default: float, env_key: str) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return float(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be numeric (received '{raw_value}')") from exc


def _parse_int(raw_value: Optional[str], default: int, env_key: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be an integer (received '{raw_value}')") from exc


def _build_openai_config(provider_env: str) -> OpenAIConfig:
    missing = [env_key for env_key in REQUIRED_OPENAI_ENV_VARS if not (os.getenv(env_key) or "").strip()]
    if missing:
        formatted_missing = ", ".join(missing)
        raise ProviderSettingsError(
            f"{provider_env}=openai requires the following env vars: {formatted_missing}"
        )

    return OpenAIConfig(
        api_key=os.environ["OPENAI_API_KEY"].strip(),
        model=(os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL).strip(),
        api_base=(os.getenv("OPENAI_API_BASE") or DEFAULT_OPENAI_API_BASE).strip(),
    )
