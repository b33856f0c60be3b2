#!/usr/bin/env python3
"""
Diagnostic script to check the finance API's environment variables.

Run this in the deployment shell (or locally before starting the API) to verify
that the AI provider and authentication settings are present. Secret values are
redacted in the output.
"""

import os
import sys
from typing import Any

DEFAULT_JWT_SECRET = "dev_secret_change_me"
SUPPORTED_PROVIDERS = ("openai", "mock")

REQUIRED_VARS = {
    "JWT_SECRET": "a long random string",
    "OPENAI_API_KEY": "sk-...",
}

OPTIONAL_VARS = {
    "AI_PROVIDER": "openai",
    "OPENAI_MODEL": "gpt-4o-mini",
    "OPENAI_API_BASE": "https://api.openai.com/v1",
    "AI_PROVIDER_TIMEOUT_SECONDS": "60.0",
    "AI_PROVIDER_TEMPERATURE": "0.2",
    "AI_PROVIDER_MAX_TOKENS": "1024",
    "FINANCE_DB_URL": "sqlite:///services/finance-api/data/finance.db",
    "FINANCE_API_MAX_UPLOAD_MB": "10",
    "FINANCE_API_CURRENCY_SYMBOL": "₹",
    "FINANCE_API_RATE_LIMIT_PER_MIN": "60",
    "FINANCE_API_AI_RATE_LIMIT_PER_MIN": "10",
}


def check_env_var(key: str) -> dict[str, Any]:
    """Check if an environment variable is set, redacting secrets."""
    value = os.getenv(key)
    is_set = value is not None and value.strip() != ""

    result = {
        "key": key,
        "is_set": is_set,
        "value": value if is_set else None,
        "is_redacted": False,
    }

    if is_set and any(marker in key.upper() for marker in ("KEY", "SECRET", "PASSWORD")):
        result["value"] = f"{value[:7]}...{value[-4:]}" if len(value) > 11 else "***REDACTED***"
        result["is_redacted"] = True

    return result


def find_issues() -> list[str]:
    """Return human-readable problems with the current environment."""
    issues = []

    provider = (os.getenv("AI_PROVIDER") or "openai").strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        issues.append(f"AI_PROVIDER is set to '{provider}' but should be one of: {', '.join(SUPPORTED_PROVIDERS)}")

    if provider == "openai" and not check_env_var("OPENAI_API_KEY")["is_set"]:
        issues.append("OPENAI_API_KEY is not set (chatbot fallback and AI receipts will return 503)")

    jwt_secret = (os.getenv("JWT_SECRET") or "").strip()
    if not jwt_secret:
        issues.append("JWT_SECRET is not set (the development default will be used)")
    elif jwt_secret == DEFAULT_JWT_SECRET:
        issues.append("JWT_SECRET still uses the development default")

    return issues


def main() -> int:
    """Check environment variables and report status."""
    print("=" * 70)
    print("Finance API Environment Variable Diagnostic")
    print("=" * 70)
    print()

    print("REQUIRED VARIABLES:")
    print("-" * 70)
    for key in REQUIRED_VARS:
        result = check_env_var(key)
        status = "✓" if result["is_set"] else "✗"
        shown = result["value"] if result["is_set"] else "NOT SET"
        print(f"{status} {key:45} = {shown}")

    print()

    print("OPTIONAL VARIABLES:")
    print("-" * 70)
    for key, default in OPTIONAL_VARS.items():
        result = check_env_var(key)
        status = "✓" if result["is_set"] else "○"
        if result["is_set"]:
            print(f"{status} {key:45} = {result['value']}")
        else:
            print(f"{status} {key:45} = NOT SET (default: {default})")

    print()
    print("=" * 70)

    issues = find_issues()
    if issues:
        print("❌ ISSUES FOUND:")
        for issue in issues:
            print(f"   - {issue}")
        print()
        print("Set the variables above in the service environment and restart the API.")
        print("Use AI_PROVIDER=mock to run without an OpenAI key (fixture responses only).")
        return 1

    print("✓ All required variables are set correctly!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
