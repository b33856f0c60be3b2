"""
Shared observability helpers (telemetry, privacy utilities, etc.).

Services import from this package to enable consistent instrumentation and
logging guardrails.
"""

from .privacy import hash_payload, mask_email, redact_fields
from .telemetry import (
    CORRELATION_ID_HEADER,
    RequestContextToken,
    bind_request_context,
    bind_user_context,
    ensure_request_id,
    reset_request_context,
    setup_telemetry,
)

__all__ = [
    "hash_payload",
    "mask_email",
    "redact_fields",
    "CORRELATION_ID_HEADER",
    "RequestContextToken",
    "bind_request_context",
    "bind_user_context",
    "ensure_request_id",
    "reset_request_context",
    "setup_telemetry",
]
