"""Entry point for chatbot queries: local intents first, AI fallback otherwise."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable

from shared.observability.privacy import hash_payload

from ai_resolver import build_chat_context, build_range_data, resolve_with_ai
from date_ranges import infer_date_range
from insight_engine import DEFAULT_CURRENCY_SYMBOL, answer_intent
from intent_classifier import NoIntent, classify_intent
from models.chat_reply import ChatReply
from persistence.repository import TransactionRepository
from text_provider import TextGenerator

logger = logging.getLogger(__name__)


def answer_chat_query(
    message: str,
    user_id: str,
    repository: TransactionRepository,
    generator_factory: Callable[[], TextGenerator],
    now: datetime,
    *,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
    sleep: Callable[[float], None] = time.sleep,
) -> ChatReply:
    """
    Resolve a chat message for `user_id`.

    The generator factory is only invoked on the AI path, so a missing AI
    credential never blocks questions that can be answered locally.
    """

    date_range = infer_date_range(message, now)
    intent = classify_intent(message)
    logger.info(
        {
            "event": "chat_query_classified",
            "message_hash": hash_payload(message),
            "intent": type(intent).__name__,
            "range_kind": date_range.kind,
        }
    )

    if not isinstance(intent, NoIntent):
        return answer_intent(intent, date_range, user_id, repository, now, currency_symbol=currency_symbol)

    generator = generator_factory()
    context = build_chat_context(repository, user_id, now)
    range_data = build_range_data(repository, user_id, date_range)
    return resolve_with_ai(message, context, range_data, generator, now, sleep=sleep)
