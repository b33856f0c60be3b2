"""
Local, read-only answers for the chatbot intents that do not need the AI.

Every figure is computed from the caller's own transactions. Spending questions
only ever sum EXPENSE rows, and the budget intents always look at the current
calendar month regardless of any range the message mentioned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from date_ranges import DateRange, days_in_month, end_of_month, start_of_month
from intent_classifier import (
    BudgetSurvivability,
    CountCategory,
    Intent,
    Recommendations,
    SumCategory,
    SumTotal,
)
from models.chat_reply import ChatReply
from persistence.models import TransactionType
from persistence.repository import TransactionFilter, TransactionRepository

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY_SYMBOL = "₹"


@dataclass(slots=True)
class MonthBudgetSnapshot:
    """Budget arithmetic for the calendar month containing `now`."""

    month_start: datetime
    month_end: datetime
    monthly_budget: float
    spent: float
    day_of_month: int
    days_in_month: int

    @property
    def remaining(self) -> float:
        return max(self.monthly_budget - self.spent, 0.0)

    @property
    def days_left(self) -> int:
        return max(self.days_in_month - self.day_of_month, 0)

    @property
    def average_per_day(self) -> float:
        return self.spent / self.day_of_month if self.day_of_month > 0 else 0.0

    @property
    def needed_per_day(self) -> float:
        return self.remaining / self.days_left if self.days_left > 0 else 0.0

    @property
    def can_survive(self) -> bool:
        return self.monthly_budget > 0 and self.spent <= self.monthly_budget


def build_month_snapshot(repository: TransactionRepository, user_id: str, now: datetime) -> MonthBudgetSnapshot:
    month_start = start_of_month(now)
    month_end = end_of_month(now)
    spent = repository.sum_expenses(
        user_id,
        TransactionFilter(start=month_start, end=month_end, type=TransactionType.EXPENSE),
    )
    return MonthBudgetSnapshot(
        month_start=month_start,
        month_end=month_end,
        monthly_budget=repository.get_monthly_budget(user_id),
        spent=spent,
        day_of_month=now.day,
        days_in_month=days_in_month(now),
    )


def answer_intent(
    intent: Intent,
    date_range: DateRange,
    user_id: str,
    repository: TransactionRepository,
    now: datetime,
    *,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> ChatReply:
    """Produce the templated reply for a locally answerable intent."""

    sym = currency_symbol
    if isinstance(intent, CountCategory):
        count = repository.count(user_id, _range_filter(date_range, category=intent.category))
        reply = f"You went for {intent.category} {count} time(s) {date_range.label}."
    elif isinstance(intent, SumCategory):
        total = repository.sum_expenses(user_id, _range_filter(date_range, category=intent.category))
        reply = f"You spent {sym}{total:.2f} on {intent.category} {date_range.label}."
    elif isinstance(intent, SumTotal):
        total = repository.sum_expenses(user_id, _range_filter(date_range))
        reply = f"You spent a total of {sym}{total:.2f} {date_range.label}."
    elif isinstance(intent, BudgetSurvivability):
        reply = _survivability_reply(build_month_snapshot(repository, user_id, now), sym)
    elif isinstance(intent, Recommendations):
        reply = _recommendations_reply(build_month_snapshot(repository, user_id, now), sym)
    else:
        raise ValueError(f"Intent {type(intent).__name__} has no local answer")

    logger.info(
        {
            "event": "chat_local_answer",
            "intent": type(intent).__name__,
            "range_kind": date_range.kind,
        }
    )
    return ChatReply(reply=reply, transactions=None)


def compute_budget_status(repository: TransactionRepository, user_id: str, now: datetime) -> Dict[str, Any]:
    """
    Summarize the current month against the monthly budget.

    Unlike the chat reply, `remaining` here is signed so that an overspent month
    reports a negative value and `isOverBudget`.
    """

    snapshot = build_month_snapshot(repository, user_id, now)
    remaining = snapshot.monthly_budget - snapshot.spent
    percentage_used = (snapshot.spent / snapshot.monthly_budget) * 100 if snapshot.monthly_budget > 0 else 0.0
    return {
        "monthlyBudget": snapshot.monthly_budget,
        "spent": round(snapshot.spent, 2),
        "remaining": round(remaining, 2),
        "percentageUsed": round(percentage_used, 2),
        "isOverBudget": remaining < 0,
        "month": now.strftime("%B %Y"),
    }


def _range_filter(date_range: DateRange, *, category: str | None = None) -> TransactionFilter:
    if date_range.is_bounded:
        return TransactionFilter(start=date_range.start, end=date_range.end, category=category)
    return TransactionFilter(category=category)


def _survivability_reply(snapshot: MonthBudgetSnapshot, sym: str) -> str:
    if snapshot.monthly_budget <= 0:
        return (
            "You haven't set a monthly budget yet. "
            f"So far this month you've spent {sym}{snapshot.spent:.2f}."
        )

    verdict = "Yes" if snapshot.can_survive else "No"
    standing = "are currently within" if snapshot.can_survive else "are over"
    return (
        f"This month you've spent {sym}{snapshot.spent:.2f} of your {sym}{snapshot.monthly_budget:.2f} budget. "
        f"{verdict}, you {standing} budget. "
        f"To stay within budget, target about {sym}{snapshot.needed_per_day:.2f} per day "
        f"for the remaining {snapshot.days_left} day(s)."
    )


def _recommendations_reply(snapshot: MonthBudgetSnapshot, sym: str) -> str:
    tips = []
    if snapshot.monthly_budget > 0:
        tips.append(
            f"Target ≤ {sym}{snapshot.needed_per_day:.2f} per day for the remaining {snapshot.days_left} day(s)."
        )
    if snapshot.average_per_day > 0:
        tips.append(
            f"Your average daily spend so far is {sym}{snapshot.average_per_day:.2f}. "
            "Cut discretionary categories by 10–15% to meet target."
        )
    tips.append("Review top categories and reduce the largest 1–2 by setting weekly caps.")
    tips.append("Delay non-urgent purchases to next month.")
    return f"Suggestions based on your data: {' '.join(tips)}"
