"""Deterministic intent detection for chatbot messages that can be answered without the AI."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

# Scanned in order; the first alias contained in the message wins.
CATEGORY_ALIASES: Tuple[Tuple[str, str], ...] = (
    ("dining", "Dining"),
    ("restaurant", "Dining"),
    ("food", "Dining"),
    ("groceries", "Groceries"),
    ("grocery", "Groceries"),
    ("fuel", "Fuel"),
    ("gas", "Fuel"),
    ("transportation", "Transportation"),
    ("taxi", "Transportation"),
    ("uber", "Transportation"),
    ("entertainment", "Entertainment"),
    ("health", "Health"),
    ("shopping", "Shopping"),
    ("utilities", "Utilities"),
    ("salary", "Salary"),
    ("freelance", "Freelance"),
)

_COUNT_PATTERN = re.compile(r"how\s+many\s+times")
_SUM_PATTERN = re.compile(r"how\s+much\s+did\s+i\s+spend")
_BUDGET_PATTERN = re.compile(
    r"(survive|within\s+my\s+budget|under\s+budget|over\s+budget|can\s+i\s+make\s+it\s+this\s+month)"
)
_RECOMMENDATION_PATTERN = re.compile(r"(recommend|suggest|advice|how\s+to\s+save|tips)")


@dataclass(frozen=True, slots=True)
class CountCategory:
    category: str


@dataclass(frozen=True, slots=True)
class SumCategory:
    category: str


@dataclass(frozen=True, slots=True)
class SumTotal:
    pass


@dataclass(frozen=True, slots=True)
class BudgetSurvivability:
    pass


@dataclass(frozen=True, slots=True)
class Recommendations:
    pass


@dataclass(frozen=True, slots=True)
class NoIntent:
    """The message needs the AI fallback."""


Intent = Union[CountCategory, SumCategory, SumTotal, BudgetSurvivability, Recommendations, NoIntent]


def find_category_alias(message: str) -> Optional[str]:
    """Return the canonical category for the first alias found in `message` (case-insensitive)."""
    lowered = (message or "").lower()
    for alias, category in CATEGORY_ALIASES:
        if alias in lowered:
            return category
    return None


def classify_intent(message: str) -> Intent:
    """
    Map a chat message onto one of the locally answerable intents.

    A "how many times" question without a recognizable category falls through to
    the remaining rules instead of returning immediately.
    """

    lowered = (message or "").lower()

    if _COUNT_PATTERN.search(lowered):
        category = find_category_alias(lowered)
        if category:
            return CountCategory(category=category)

    if _SUM_PATTERN.search(lowered):
        category = find_category_alias(lowered)
        if category:
            return SumCategory(category=category)
        return SumTotal()

    if _BUDGET_PATTERN.search(lowered):
        return BudgetSurvivability()

    if _RECOMMENDATION_PATTERN.search(lowered):
        return Recommendations()

    return NoIntent()
