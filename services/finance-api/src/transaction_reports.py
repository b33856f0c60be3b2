from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from persistence.models import TransactionType
from persistence.repository import TransactionFilter, TransactionRepository


def _window(start: Optional[datetime], end: Optional[datetime], **extra: Any) -> TransactionFilter:
    return TransactionFilter(start=start, end=end, **extra)


def compute_summary(
    repository: TransactionRepository,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Totals per transaction type plus per-category expense totals.

    Args:
        repository: Store scoped queries run against.
        user_id: Owner whose transactions are aggregated.
        start/end: Optional inclusive bounds on the transaction date.
    Returns:
        `byType` lists each type that has rows; `byCategory` only covers EXPENSE
        rows so it can feed a spending breakdown directly.
    """

    totals = repository.sum_by_type(user_id, _window(start, end))
    by_type = []
    if totals.income:
        by_type.append({"type": TransactionType.INCOME.value, "amount": round(totals.income, 2)})
    if totals.expense:
        by_type.append({"type": TransactionType.EXPENSE.value, "amount": round(totals.expense, 2)})

    by_category = [
        {"category": category, "amount": round(amount, 2)}
        for category, amount in repository.sum_by_category(
            user_id, _window(start, end, type=TransactionType.EXPENSE)
        )
    ]
    return {"byType": by_type, "byCategory": by_category}


def compute_monthly_trends(
    repository: TransactionRepository,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Income/expense totals bucketed by `YYYY-MM`, oldest month first."""

    buckets: Dict[str, Dict[str, Any]] = {}
    for transaction in repository.in_date_order(user_id, _window(start, end)):
        month = transaction.date.strftime("%Y-%m")
        bucket = buckets.setdefault(month, {"month": month, "income": 0.0, "expense": 0.0})
        if transaction.type == TransactionType.INCOME:
            bucket["income"] += float(transaction.amount)
        else:
            bucket["expense"] += float(transaction.amount)

    return [
        {"month": bucket["month"], "income": round(bucket["income"], 2), "expense": round(bucket["expense"], 2)}
        for _, bucket in sorted(buckets.items())
    ]


def compute_stats(
    repository: TransactionRepository,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Headline figures for a dashboard.

    The average daily spend divides total expenses by the number of calendar
    days spanned by the transactions in the window (inclusive), not by the
    width of the requested window.
    """

    totals = repository.sum_by_type(user_id, _window(start, end))
    income, expense = totals.income, totals.expense
    savings = income - expense
    savings_rate = (savings / income) * 100 if income > 0 else 0.0

    categories = repository.sum_by_category(user_id, _window(start, end, type=TransactionType.EXPENSE))
    biggest_category = categories[0][0] if categories else "N/A"

    average_daily = 0.0
    transactions = repository.in_date_order(user_id, _window(start, end))
    if transactions and expense > 0:
        span = transactions[-1].date - transactions[0].date
        days = math.ceil(span.total_seconds() / 86400) + 1
        average_daily = expense / max(days, 1)

    return {
        "totalIncome": round(income, 2),
        "totalExpense": round(expense, 2),
        "netSavings": round(savings, 2),
        "savingsRate": round(savings_rate, 2),
        "biggestExpenseCategory": biggest_category,
        "averageDailySpending": round(average_daily, 2),
    }
