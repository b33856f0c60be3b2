"""
AI-assisted receipt extraction.

The model is asked for a bare JSON array of transactions. Its output is only a
suggestion for the user to review: every field is coerced to a usable default
here and nothing is persisted until the confirm endpoint receives the edited
list.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date
from typing import Any, Dict, List

from shared.observability.privacy import hash_payload, redact_fields

from parsers.statement_parser import parse_leading_float
from text_provider import AIRequestError, AIResponseFormatError, TextGenerator, strip_code_fences

logger = logging.getLogger(__name__)

RECEIPT_CATEGORIES = (
    "Groceries",
    "Dining",
    "Transportation",
    "Entertainment",
    "Health",
    "Utilities",
    "Shopping",
    "Fuel",
    "Housing",
    "Salary",
    "Freelance",
    "Uncategorized",
)
SAFE_LOG_KEYS = frozenset({"category", "type"})

RECEIPT_PROMPT_TEMPLATE = """You are a receipt parser. Extract transaction fields and return ONLY a JSON array, no other text.

Each transaction must have these exact fields:
- date: ISO date string (YYYY-MM-DD format). If no date found, use today's date: {today}
- description: Brief description of the purchase/merchant
- category: One of: {categories}
- amount: Number (just the number, no currency symbols)
- type: Either "INCOME" or "EXPENSE" (most receipts are EXPENSE)

Return ONLY valid JSON array format like this:
[{{"date":"2025-01-15","description":"Coffee Shop","category":"Dining","amount":12.50,"type":"EXPENSE"}}]

Receipt text:
\"\"\"
{text}
\"\"\""""


def build_receipt_prompt(text: str, today: date) -> str:
    categories = ", ".join(RECEIPT_CATEGORIES[:-1]) + f", or {RECEIPT_CATEGORIES[-1]}"
    return RECEIPT_PROMPT_TEMPLATE.format(today=today.isoformat(), categories=categories, text=text)


def parse_receipt_response(ai_text: str, today: date) -> List[Dict[str, Any]]:
    """
    Decode the model's array and coerce each entry into a reviewable candidate.

    Raises:
        AIResponseFormatError: the output is not JSON or not a JSON array.
    """

    try:
        payload = json.loads(strip_code_fences(ai_text))
    except json.JSONDecodeError as exc:
        raise AIResponseFormatError(f"Failed to parse AI response: {exc.msg}") from exc

    if not isinstance(payload, list):
        raise AIResponseFormatError("AI returned invalid format")

    return [_coerce_candidate(item if isinstance(item, dict) else {}, today) for item in payload]


def analyze_receipt_text(text: str, generator: TextGenerator, today: date) -> List[Dict[str, Any]]:
    """Ask the model to structure OCR/PDF text into candidate transactions."""

    prompt = build_receipt_prompt(text, today)
    logger.info(
        {
            "event": "ai_receipt_request",
            "provider": generator.name,
            "prompt_hash": hash_payload(prompt),
        }
    )

    ai_text = generator.generate(prompt)
    if not ai_text or not ai_text.strip():
        raise AIRequestError("No response from AI")

    candidates = parse_receipt_response(ai_text, today)
    logger.info(
        {
            "event": "ai_receipt_response",
            "provider": generator.name,
            "candidate_count": len(candidates),
            "candidates": [redact_fields(candidate, SAFE_LOG_KEYS) for candidate in candidates],
        }
    )
    return candidates


def _coerce_candidate(item: Dict[str, Any], today: date) -> Dict[str, Any]:
    tx_type = item.get("type")
    return {
        "date": str(item.get("date") or today.isoformat()),
        "description": str(item.get("description") or "Unknown"),
        "category": str(item.get("category") or "Uncategorized"),
        "amount": _coerce_amount(item.get("amount")),
        "type": tx_type if tx_type in ("INCOME", "EXPENSE") else "EXPENSE",
    }


def _coerce_amount(raw: Any) -> float:
    if isinstance(raw, bool) or raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        value = parse_leading_float(str(raw))
    if value is None or not math.isfinite(value):
        return 0.0
    return value
