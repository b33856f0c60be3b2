from __future__ import annotations

import math
import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from models.transaction_candidate import ExtractedCandidate
from persistence.models import TransactionType

# Tried in order; the first pattern whose first match is a positive number wins.
AMOUNT_PATTERNS: Sequence[re.Pattern[str]] = (
    re.compile(r"(?:\$)?([0-9]+(?:\.[0-9]{2})?)"),
    re.compile(r"([0-9]+(?:\.[0-9]{2})?)\s*(?:USD|usd)"),
    re.compile(r"total[:\s]*(?:\$)?([0-9]+(?:\.[0-9]{2})?)", re.IGNORECASE),
    re.compile(r"amount[:\s]*(?:\$)?([0-9]+(?:\.[0-9]{2})?)", re.IGNORECASE),
)

CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Groceries", ("grocery", "market", "food", "supermarket", "store")),
    ("Fuel", ("fuel", "gas", "petrol", "station")),
    ("Health", ("pharmacy", "medicine", "drug", "health")),
    ("Dining", ("restaurant", "cafe", "dining", "food")),
    ("Transportation", ("transport", "taxi", "uber", "bus")),
    ("Entertainment", ("entertainment", "movie", "cinema", "game")),
)
FALLBACK_CATEGORY = "Uncategorized"


def split_lines(text: str) -> List[str]:
    """Trimmed, non-empty lines of `text`."""
    return [line.strip() for line in re.split(r"\r?\n", text or "") if line.strip()]


def find_amount(line: str) -> Optional[float]:
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(line)
        if not match:
            continue
        amount = float(match.group(1))
        if math.isfinite(amount) and amount > 0:
            return amount
    return None


def categorize_line(line: str) -> str:
    lowered = line.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return FALLBACK_CATEGORY


def extract_receipt_candidates(text: str, now: datetime) -> List[ExtractedCandidate]:
    """
    Line-scan OCR/PDF text for anything that looks like a priced line.

    Every line carrying a positive amount becomes an EXPENSE candidate dated
    `now`, described by the line itself and categorized by keyword.
    """

    candidates: List[ExtractedCandidate] = []
    for line in split_lines(text):
        amount = find_amount(line)
        if amount is None:
            continue
        candidates.append(
            ExtractedCandidate(
                amount=amount,
                category=categorize_line(line),
                description=line,
                date=now,
                type=TransactionType.EXPENSE,
            )
        )
    return candidates
