"""Environment-driven settings for the finance API."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_CORS_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

CORS_ENV_KEYS = (
    "FINANCE_API_CORS_ORIGINS",
    "CORS_ALLOWED_ORIGINS",
    "CORS_ORIGINS",
)

DEFAULT_JWT_SECRET = "dev_secret_change_me"


class SettingsError(RuntimeError):
    """Raised when a service setting cannot be parsed."""


@dataclass(frozen=True, slots=True)
class ServiceSettings:
    jwt_secret: str
    jwt_expires_days: int
    max_upload_bytes: int
    currency_symbol: str
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))


def load_service_settings() -> ServiceSettings:
    """Read service settings from the environment, applying defaults for local development."""

    max_upload_mb = _parse_int(os.getenv("FINANCE_API_MAX_UPLOAD_MB"), 10, "FINANCE_API_MAX_UPLOAD_MB")
    return ServiceSettings(
        jwt_secret=(os.getenv("JWT_SECRET") or DEFAULT_JWT_SECRET).strip(),
        jwt_expires_days=_parse_int(os.getenv("JWT_EXPIRES_DAYS"), 7, "JWT_EXPIRES_DAYS"),
        max_upload_bytes=max_upload_mb * 1024 * 1024,
        currency_symbol=os.getenv("FINANCE_API_CURRENCY_SYMBOL") or "₹",
        cors_origins=resolve_cors_origins(),
    )


def resolve_cors_origins() -> List[str]:
    """
    Determine which origins are allowed to call the API.

    Developers can provide a comma-separated list via any env var in `CORS_ENV_KEYS`.
    Falls back to localhost-friendly defaults so the dashboard dev server can talk to the API.
    """

    for key in CORS_ENV_KEYS:
        raw_value = os.getenv(key)
        if not raw_value:
            continue
        candidates = [origin.strip() for origin in raw_value.split(",")]
        origins = [origin for origin in candidates if origin]
        if origins:
            # FastAPI expects ["*"] instead of mixing '*' with explicit origins.
            if any(origin == "*" for origin in origins):
                return ["*"]
            return origins
    return list(DEFAULT_CORS_ORIGINS)


def _parse_int(raw_value: Optional[str], default: int, env_key: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise SettingsError(f"{env_key} must be an integer (received '{raw_value}')") from exc
