import pytest

from intent_classifier import (
    BudgetSurvivability,
    CountCategory,
    NoIntent,
    Recommendations,
    SumCategory,
    SumTotal,
    classify_intent,
    find_category_alias,
)


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("How many times did I go for dining last month?", CountCategory(category="Dining")),
        ("How much did I spend on food last week?", SumCategory(category="Dining")),
        ("how much did i spend on groceries", SumCategory(category="Groceries")),
        ("How much did I spend on gas?", SumCategory(category="Fuel")),
        ("How much did I spend this month?", SumTotal()),
        ("Can I survive this month?", BudgetSurvivability()),
        ("Am I over budget?", BudgetSurvivability()),
        ("Any tips to cut costs?", Recommendations()),
        ("What was my biggest purchase?", NoIntent()),
    ],
)
def test_classify_intent(message: str, expected: object) -> None:
    assert classify_intent(message) == expected


def test_count_question_without_category_falls_through() -> None:
    assert classify_intent("How many times did I go to the gym?") == NoIntent()
    assert classify_intent("How many times can I eat out and still survive?") == BudgetSurvivability()


def test_alias_table_order_decides_between_categories() -> None:
    # "food" is listed before "groceries".
    assert find_category_alias("groceries and food") == "Dining"
    assert find_category_alias("Took an UBER home") == "Transportation"
    assert find_category_alias("nothing relevant") is None


def test_empty_message_needs_ai() -> None:
    assert classify_intent("") == NoIntent()
