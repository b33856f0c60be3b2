from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class ChatReply:
    """Answer returned by the chatbot; `transactions` is None unless the AI listed some."""

    reply: str
    transactions: list[dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"reply": self.reply, "transactions": self.transactions}
