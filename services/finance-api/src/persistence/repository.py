"""User and transaction data access helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from persistence.models import Transaction, TransactionType, User


class InvalidTransactionError(ValueError):
    """Raised when a transaction would violate the positive-amount or category invariants."""


@dataclass(slots=True)
class NewTransaction:
    """Validated input for a transaction that is about to be persisted."""

    type: TransactionType
    amount: float
    category: str
    date: datetime
    description: Optional[str] = None


@dataclass(slots=True)
class TransactionFilter:
    """Optional constraints applied on top of the mandatory user scope."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = None


@dataclass(slots=True)
class TypeTotals:
    income: float = 0.0
    expense: float = 0.0


class UserRepository:
    """Thin repository for account records and the monthly budget."""

    def __init__(self, db: Session):
        self._db = db

    def create_user(self, email: str, password_hash: str, name: Optional[str] = None) -> User:
        record = User(email=email, password_hash=password_hash, name=name, monthly_budget=0)
        self._db.add(record)
        self._db.commit()
        self._db.refresh(record)
        return record

    def get_user(self, user_id: str) -> User | None:
        return self._db.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self._db.scalars(select(User).where(User.email == email)).first()

    def set_monthly_budget(self, user: User, monthly_budget: float) -> User:
        if monthly_budget < 0 or not math.isfinite(monthly_budget):
            raise InvalidTransactionError("Monthly budget must be a non-negative number.")
        user.monthly_budget = round(monthly_budget, 2)
        self._db.add(user)
        self._db.commit()
        self._db.refresh(user)
        return user


class TransactionRepository:
    """Read/write access to a single store of transactions, always scoped by user."""

    def __init__(self, db: Session):
        self._db = db

    def get_monthly_budget(self, user_id: str) -> float:
        budget = self._db.scalar(select(User.monthly_budget).where(User.id == user_id))
        return float(budget or 0)

    def create_transaction(self, user_id: str, entry: NewTransaction) -> Transaction:
        return self.create_many(user_id, [entry])[0]

    def create_many(self, user_id: str, entries: Iterable[NewTransaction]) -> List[Transaction]:
        """
        Insert every entry in one database transaction.

        All entries are validated before anything is added, and a failing commit
        is rolled back, so either the whole batch is stored or none of it is.
        """

        pending = list(entries)
        for index, entry in enumerate(pending):
            _validate_entry(entry, index)

        records = [
            Transaction(
                user_id=user_id,
                type=entry.type,
                amount=round(float(entry.amount), 2),
                category=entry.category.strip(),
                description=entry.description,
                date=entry.date,
            )
            for entry in pending
        ]
        if not records:
            return []

        try:
            self._db.add_all(records)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise

        for record in records:
            self._db.refresh(record)
        return records

    def list_transactions(
        self,
        user_id: str,
        filters: TransactionFilter | None = None,
        *,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Transaction], int]:
        """Return one page of matching transactions (newest first) and the total match count."""
        statement = self._apply_filters(select(Transaction), user_id, filters)
        statement = statement.order_by(Transaction.date.desc()).offset((page - 1) * page_size).limit(page_size)
        items = list(self._db.scalars(statement))
        return items, self.count(user_id, filters)

    def recent(
        self,
        user_id: str,
        filters: TransactionFilter | None = None,
        *,
        limit: int = 200,
    ) -> List[Transaction]:
        statement = self._apply_filters(select(Transaction), user_id, filters)
        statement = statement.order_by(Transaction.date.desc()).limit(limit)
        return list(self._db.scalars(statement))

    def in_date_order(self, user_id: str, filters: TransactionFilter | None = None) -> List[Transaction]:
        statement = self._apply_filters(select(Transaction), user_id, filters)
        return list(self._db.scalars(statement.order_by(Transaction.date.asc())))

    def count(self, user_id: str, filters: TransactionFilter | None = None) -> int:
        statement = self._apply_filters(select(func.count(Transaction.id)), user_id, filters)
        return int(self._db.scalar(statement) or 0)

    def sum_by_type(self, user_id: str, filters: TransactionFilter | None = None) -> TypeTotals:
        statement = self._apply_filters(
            select(Transaction.type, func.sum(Transaction.amount)),
            user_id,
            filters,
        ).group_by(Transaction.type)

        totals = TypeTotals()
        for tx_type, amount in self._db.execute(statement):
            value = float(amount or 0)
            if tx_type == TransactionType.EXPENSE:
                totals.expense += value
            elif tx_type == TransactionType.INCOME:
                totals.income += value
        return totals

    def sum_expenses(self, user_id: str, filters: TransactionFilter | None = None) -> float:
        return self.sum_by_type(user_id, filters).expense

    def sum_by_category(self, user_id: str, filters: TransactionFilter | None = None) -> List[Tuple[str, float]]:
        """Per-category totals, largest first."""
        total = func.sum(Transaction.amount)
        statement = (
            self._apply_filters(select(Transaction.category, total), user_id, filters)
            .group_by(Transaction.category)
            .order_by(total.desc())
        )
        return [(category, float(amount or 0)) for category, amount in self._db.execute(statement)]

    def _apply_filters(self, statement: Select, user_id: str, filters: TransactionFilter | None) -> Select:
        statement = statement.where(Transaction.user_id == user_id)
        if filters is None:
            return statement
        if filters.start is not None:
            statement = statement.where(Transaction.date >= filters.start)
        if filters.end is not None:
            statement = statement.where(Transaction.date <= filters.end)
        if filters.type is not None:
            statement = statement.where(Transaction.type == filters.type)
        if filters.category is not None:
            statement = statement.where(Transaction.category == filters.category)
        return statement


def _validate_entry(entry: NewTransaction, index: int) -> None:
    try:
        amount = float(entry.amount)
    except (TypeError, ValueError) as exc:
        raise InvalidTransactionError(f"Transaction {index}: amount must be numeric") from exc
    # Checked at stored precision; sub-cent amounts round to 0.00.
    if not math.isfinite(amount) or round(amount, 2) <= 0:
        raise InvalidTransactionError(f"Transaction {index}: amount must be positive")
    if not entry.category or not entry.category.strip():
        raise InvalidTransactionError(f"Transaction {index}: category must not be empty")
    if not isinstance(entry.type, TransactionType):
        raise InvalidTransactionError(f"Transaction {index}: type must be INCOME or EXPENSE")
