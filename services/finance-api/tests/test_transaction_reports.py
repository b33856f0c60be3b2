from datetime import datetime
from typing import Callable

import pytest
from sqlalchemy.orm import Session

from persistence.models import TransactionType, User
from persistence.repository import NewTransaction, TransactionRepository
from transaction_reports import compute_monthly_trends, compute_stats, compute_summary


@pytest.fixture
def seeded(db_session: Session, make_user: Callable[..., User]):
    user = make_user()
    repo = TransactionRepository(db_session)
    repo.create_many(
        user.id,
        [
            NewTransaction(type=TransactionType.INCOME, amount=5000, category="Salary", date=datetime(2025, 6, 1)),
            NewTransaction(type=TransactionType.EXPENSE, amount=100, category="Dining", date=datetime(2025, 6, 5)),
            NewTransaction(type=TransactionType.EXPENSE, amount=300, category="Groceries", date=datetime(2025, 7, 1)),
            NewTransaction(type=TransactionType.EXPENSE, amount=50, category="Dining", date=datetime(2025, 7, 10)),
        ],
    )
    return repo, user


def test_summary_splits_types_and_expense_categories(seeded) -> None:
    repo, user = seeded

    assert compute_summary(repo, user.id) == {
        "byType": [{"type": "INCOME", "amount": 5000.0}, {"type": "EXPENSE", "amount": 450.0}],
        "byCategory": [{"category": "Groceries", "amount": 300.0}, {"category": "Dining", "amount": 150.0}],
    }


def test_summary_respects_window(seeded) -> None:
    repo, user = seeded

    summary = compute_summary(repo, user.id, datetime(2025, 7, 1), datetime(2025, 7, 31, 23, 59, 59))

    assert summary["byType"] == [{"type": "EXPENSE", "amount": 350.0}]


def test_monthly_trends_oldest_first(seeded) -> None:
    repo, user = seeded

    assert compute_monthly_trends(repo, user.id) == [
        {"month": "2025-06", "income": 5000.0, "expense": 100.0},
        {"month": "2025-07", "income": 0.0, "expense": 350.0},
    ]


def test_stats(seeded) -> None:
    repo, user = seeded

    assert compute_stats(repo, user.id) == {
        "totalIncome": 5000.0,
        "totalExpense": 450.0,
        "netSavings": 4550.0,
        "savingsRate": 91.0,
        "biggestExpenseCategory": "Groceries",
        # 1 June through 10 July spans 40 calendar days.
        "averageDailySpending": 11.25,
    }


def test_stats_without_transactions(db_session: Session, make_user: Callable[..., User]) -> None:
    user = make_user()

    stats = compute_stats(TransactionRepository(db_session), user.id)

    assert stats["biggestExpenseCategory"] == "N/A"
    assert stats["savingsRate"] == 0.0
    assert stats["averageDailySpending"] == 0.0
