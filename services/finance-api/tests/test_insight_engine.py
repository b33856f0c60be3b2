from datetime import datetime
from typing import Callable

import pytest
from sqlalchemy.orm import Session

from date_ranges import NO_RANGE, infer_date_range
from insight_engine import answer_intent, compute_budget_status
from intent_classifier import (
    BudgetSurvivability,
    CountCategory,
    NoIntent,
    Recommendations,
    SumCategory,
    SumTotal,
)
from persistence.models import TransactionType, User
from persistence.repository import NewTransaction, TransactionRepository, UserRepository

NOW = datetime(2025, 7, 15, 12, 0)


def _expense(category: str, amount: float, when: datetime) -> NewTransaction:
    return NewTransaction(type=TransactionType.EXPENSE, amount=amount, category=category, date=when)


@pytest.fixture
def seeded_user(db_session: Session, make_user: Callable[..., User]) -> User:
    user = make_user()
    repo = TransactionRepository(db_session)
    repo.create_many(
        user.id,
        [
            NewTransaction(type=TransactionType.INCOME, amount=5000, category="Salary", date=datetime(2025, 7, 1)),
            _expense("Dining", 200, datetime(2025, 7, 2, 13, 0)),
            _expense("Dining", 300, datetime(2025, 7, 10, 20, 0)),
            _expense("Groceries", 500, datetime(2025, 7, 12, 10, 0)),
            _expense("Dining", 100, datetime(2025, 6, 20, 19, 0)),
        ],
    )

    other = make_user(email="ben@example.com")
    repo.create_transaction(other.id, _expense("Dining", 999, datetime(2025, 7, 3)))
    return user


def _answer(intent, message: str, user: User, db_session: Session, **kwargs) -> str:
    reply = answer_intent(
        intent,
        infer_date_range(message, NOW),
        user.id,
        TransactionRepository(db_session),
        NOW,
        **kwargs,
    )
    assert reply.transactions is None
    return reply.reply


def test_count_category_in_range(seeded_user: User, db_session: Session) -> None:
    reply = _answer(CountCategory(category="Dining"), "this month", seeded_user, db_session)

    assert reply == "You went for Dining 2 time(s) this month."


def test_sum_category_without_range_covers_all_time(seeded_user: User, db_session: Session) -> None:
    reply = _answer(SumCategory(category="Dining"), "how much on dining", seeded_user, db_session)

    assert reply == "You spent ₹600.00 on Dining all time."


def test_sum_total_ignores_income(seeded_user: User, db_session: Session) -> None:
    reply = _answer(SumTotal(), "this month", seeded_user, db_session)

    assert reply == "You spent a total of ₹1000.00 this month."


def test_currency_symbol_is_configurable(seeded_user: User, db_session: Session) -> None:
    reply = _answer(SumTotal(), "this month", seeded_user, db_session, currency_symbol="$")

    assert reply == "You spent a total of $1000.00 this month."


def test_survivability_without_budget(seeded_user: User, db_session: Session) -> None:
    reply = _answer(BudgetSurvivability(), "can I survive", seeded_user, db_session)

    assert reply == "You haven't set a monthly budget yet. So far this month you've spent ₹1000.00."


def test_survivability_within_budget(seeded_user: User, db_session: Session) -> None:
    UserRepository(db_session).set_monthly_budget(seeded_user, 3000)

    reply = _answer(BudgetSurvivability(), "can I survive last month", seeded_user, db_session)

    # The current month is used even when the message names another window.
    assert reply == (
        "This month you've spent ₹1000.00 of your ₹3000.00 budget. "
        "Yes, you are currently within budget. "
        "To stay within budget, target about ₹125.00 per day for the remaining 16 day(s)."
    )


def test_survivability_over_budget(seeded_user: User, db_session: Session) -> None:
    UserRepository(db_session).set_monthly_budget(seeded_user, 800)

    reply = _answer(BudgetSurvivability(), "am I over budget", seeded_user, db_session)

    assert "No, you are over budget." in reply
    assert "target about ₹0.00 per day" in reply


def test_recommendations_with_budget_and_spend(seeded_user: User, db_session: Session) -> None:
    UserRepository(db_session).set_monthly_budget(seeded_user, 3000)

    reply = _answer(Recommendations(), "tips", seeded_user, db_session)

    assert reply.startswith("Suggestions based on your data: ")
    assert "Target ≤ ₹125.00 per day for the remaining 16 day(s)." in reply
    assert "Your average daily spend so far is ₹66.67." in reply
    assert reply.endswith("Delay non-urgent purchases to next month.")


def test_recommendations_without_data(db_session: Session, make_user: Callable[..., User]) -> None:
    user = make_user(email="empty@example.com")

    reply = _answer(Recommendations(), "tips", user, db_session)

    assert reply == (
        "Suggestions based on your data: "
        "Review top categories and reduce the largest 1–2 by setting weekly caps. "
        "Delay non-urgent purchases to next month."
    )


def test_no_intent_has_no_local_answer(seeded_user: User, db_session: Session) -> None:
    with pytest.raises(ValueError):
        answer_intent(NoIntent(), NO_RANGE, seeded_user.id, TransactionRepository(db_session), NOW)


def test_budget_status_reports_signed_remaining(seeded_user: User, db_session: Session) -> None:
    UserRepository(db_session).set_monthly_budget(seeded_user, 800)

    status = compute_budget_status(TransactionRepository(db_session), seeded_user.id, NOW)

    assert status == {
        "monthlyBudget": 800.0,
        "spent": 1000.0,
        "remaining": -200.0,
        "percentageUsed": 125.0,
        "isOverBudget": True,
        "month": "July 2025",
    }


def test_budget_status_without_budget(seeded_user: User, db_session: Session) -> None:
    status = compute_budget_status(TransactionRepository(db_session), seeded_user.id, NOW)

    assert status["percentageUsed"] == 0.0
    assert status["isOverBudget"] is True
