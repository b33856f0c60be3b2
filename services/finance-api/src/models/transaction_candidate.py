from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from persistence.models import TransactionType
from persistence.repository import NewTransaction


@dataclass(slots=True)
class ExtractedCandidate:
    """A transaction proposed by an extractor; nothing is persisted until it is confirmed."""

    amount: float
    category: str
    description: str | None
    date: datetime
    type: TransactionType = TransactionType.EXPENSE

    def to_new_transaction(self) -> NewTransaction:
        return NewTransaction(
            type=self.type,
            amount=self.amount,
            category=self.category,
            description=self.description,
            date=self.date,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "category": self.category,
            "amount": self.amount,
            "type": self.type.value,
        }

