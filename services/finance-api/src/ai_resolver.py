"""
AI fallback for chatbot messages the local intents cannot answer.

The model is handed a JSON snapshot of the user's finances and asked to reply
with `{"reply": ..., "transactions": ...}`. Anything that does not parse as that
object is passed through verbatim as the reply text.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from shared.observability.privacy import hash_payload

from date_ranges import DateRange, days_in_month, start_of_month
from models.chat_reply import ChatReply
from persistence.models import Transaction
from persistence.repository import TransactionFilter, TransactionRepository
from text_provider import AIOverloadedError, AIRequestError, TextGenerator, strip_code_fences

logger = logging.getLogger(__name__)

RECENT_CONTEXT_LIMIT = 200
LAST_WEEK_PROMPT_LIMIT = 100
RANGE_TRANSACTION_LIMIT = 50
RANGE_PROMPT_LIMIT = 20
OVERLOAD_RETRY_DELAY_SECONDS = 0.6

PROMPT_PREAMBLE = (
    "You are a personal finance assistant. Answer ONLY using the provided JSON data.\n"
    'Be concise and specific. If the user asks for time ranges like "last week" or "this month", '
    "use now from context.\n\n"
    "Rules:\n"
    '- If the user asks "how much did I spend last week", compute sum of EXPENSE in lastWeek.\n'
    '- If asked "can I survive this month within my budget", use insights.avgExpensePerDayThisMonth '
    "and projectedExpenseThisMonth; if budget is not provided, explain using the projection and "
    "suggest a safe daily budget equal to remaining-days based adjustment.\n"
    "- When listing transactions, return at most 10 items, most recent first, with date, category, "
    "description, amount.\n"
    "- If a concrete RANGE is provided below, DO NOT ask clarifying questions; answer directly using "
    "RANGE_TOTALS and RANGE_TRANSACTIONS.\n"
    "- If the question is unclear AND no concrete RANGE is provided, ask one brief clarifying question.\n\n"
    "Return a single JSON object with keys:\n"
    '{ "reply": string, "transactions": Array<{date: string, category: string, description: string, '
    "amount: number}> | null }\n\n"
)


@dataclass(slots=True)
class ChatContext:
    """Snapshot of the user's finances handed to the model."""

    now: datetime
    month: Dict[str, Any]
    totals: Dict[str, float]
    insights: Dict[str, Any]
    last_week: List[Dict[str, Any]]


@dataclass(slots=True)
class RangeData:
    range: Dict[str, Any]
    totals: Dict[str, float]
    transactions: List[Dict[str, Any]]


def serialize_transaction(transaction: Transaction) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "date": transaction.date.isoformat(),
        "type": transaction.type.value,
        "amount": float(transaction.amount),
        "category": transaction.category,
        "description": transaction.description,
    }


def build_chat_context(repository: TransactionRepository, user_id: str, now: datetime) -> ChatContext:
    """Month-to-date and all-time aggregates plus the last seven days of activity."""

    month_start = start_of_month(now)
    seven_days_ago = now - timedelta(days=7)

    recent = repository.recent(user_id, limit=RECENT_CONTEXT_LIMIT)
    month_totals = repository.sum_by_type(user_id, TransactionFilter(start=month_start, end=now))
    all_time_totals = repository.sum_by_type(user_id)

    day_of_month = now.day
    month_days = days_in_month(now)
    avg_expense_per_day = month_totals.expense / day_of_month if day_of_month > 0 else 0.0

    return ChatContext(
        now=now,
        month={
            "income": month_totals.income,
            "expense": month_totals.expense,
            "start": month_start.isoformat(),
            "end": now.isoformat(),
        },
        totals={"income": all_time_totals.income, "expense": all_time_totals.expense},
        insights={
            "avgExpensePerDayThisMonth": avg_expense_per_day,
            "projectedExpenseThisMonth": avg_expense_per_day * month_days,
            "dayOfMonth": day_of_month,
            "daysInMonth": month_days,
        },
        last_week=[serialize_transaction(item) for item in recent if item.date >= seven_days_ago],
    )


def build_range_data(
    repository: TransactionRepository,
    user_id: str,
    date_range: DateRange,
) -> Optional[RangeData]:
    """Totals and newest transactions for a bounded range; None when the range is open."""

    if not date_range.is_bounded:
        return None

    filters = TransactionFilter(start=date_range.start, end=date_range.end)
    items = repository.recent(user_id, filters, limit=RANGE_TRANSACTION_LIMIT)
    totals = repository.sum_by_type(user_id, filters)
    return RangeData(
        range={
            "start": date_range.start.isoformat(),
            "end": date_range.end.isoformat(),
            "kind": date_range.kind,
        },
        totals={"income": totals.income, "expense": totals.expense},
        transactions=[serialize_transaction(item) for item in items],
    )


def build_prompt(message: str, context: ChatContext, range_data: Optional[RangeData]) -> str:
    context_payload = {
        "month": context.month,
        "totals": context.totals,
        "insights": context.insights,
        "lastWeek": context.last_week[:LAST_WEEK_PROMPT_LIMIT],
    }

    sections = [
        PROMPT_PREAMBLE,
        f"NOW:\n{context.now.isoformat()}\n\n",
        f"CONTEXT:\n{json.dumps(context_payload, ensure_ascii=False)}\n\n",
    ]
    if range_data is not None:
        sections.append(
            f"RANGE:\n{json.dumps(range_data.range, ensure_ascii=False)}\n"
            f"RANGE_TOTALS:\n{json.dumps(range_data.totals)}\n"
            f"RANGE_TRANSACTIONS:\n{json.dumps(range_data.transactions[:RANGE_PROMPT_LIMIT], ensure_ascii=False)}\n\n"
        )
    sections.append(f"USER_MESSAGE:\n{message}")
    return "".join(sections)


def generate_with_retry(
    generator: TextGenerator,
    prompt: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """
    Call the model once, retrying exactly once after a short pause on overload.

    Any other failure propagates immediately; a second overload becomes an
    `AIRequestError`, as does an empty response.
    """

    try:
        text = generator.generate(prompt)
    except AIOverloadedError:
        logger.warning({"event": "ai_overloaded_retry", "provider": generator.name})
        sleep(OVERLOAD_RETRY_DELAY_SECONDS)
        try:
            text = generator.generate(prompt)
        except AIOverloadedError as exc:
            raise AIRequestError("AI service is still overloaded after retry") from exc

    if not text or not text.strip():
        raise AIRequestError("Empty AI response")
    return text


def parse_chat_reply(ai_text: str) -> ChatReply:
    try:
        parsed = json.loads(strip_code_fences(ai_text))
    except json.JSONDecodeError:
        return ChatReply(reply=ai_text, transactions=None)

    if not isinstance(parsed, dict):
        return ChatReply(reply=ai_text, transactions=None)

    reply = parsed.get("reply")
    transactions = parsed.get("transactions")
    if isinstance(transactions, list):
        transactions = [item for item in transactions if isinstance(item, dict)]
    else:
        transactions = None
    return ChatReply(
        reply=reply if isinstance(reply, str) else ai_text,
        transactions=transactions,
    )


def resolve_with_ai(
    message: str,
    context: ChatContext,
    range_data: Optional[RangeData],
    generator: TextGenerator,
    now: datetime,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ChatReply:
    """Answer `message` with the external model using the supplied context blocks."""

    prompt = build_prompt(message, context, range_data)
    logger.info(
        {
            "event": "chat_ai_request",
            "provider": generator.name,
            "prompt_hash": hash_payload(prompt),
            "has_range": range_data is not None,
            "now": now.isoformat(),
        }
    )

    ai_text = generate_with_retry(generator, prompt, sleep=sleep)
    reply = parse_chat_reply(ai_text)

    logger.info(
        {
            "event": "chat_ai_response",
            "provider": generator.name,
            "response_hash": hash_payload(ai_text),
            "transaction_count": len(reply.transactions) if isinstance(reply.transactions, list) else 0,
        }
    )
    return reply
