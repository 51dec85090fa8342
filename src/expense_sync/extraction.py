"""LLM-based fallback extraction using pydantic-ai.

Only consulted for trusted mail the regex templates decline, and only when
enabled. Personal data is scrubbed from the email before it leaves the
process.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_ai import Agent

from expense_sync.config import get_anthropic_api_key, get_llm_model
from expense_sync.models import TransactionRecord
from expense_sync.parsers.categories import map_to_category
from expense_sync.parsers.fields import VIETNAM_TZ, html_to_text

logger = logging.getLogger(__name__)

SOURCE = "llm_email"
MAX_BODY_CHARS = 1000

_SYSTEM_PROMPT = """\
You extract transaction details from bank and ride-hailing notification \
emails. Given an email, return:

- amount: the final total paid (numeric, no currency symbols or separators)
- currency: ISO 4217 code, "VND" when not stated
- merchant: the store, restaurant or service name. For Grab emails look for \
"Đặt từ" or "from".
- transaction_date: when the transaction happened. Vietnamese dates such as \
"08/11/2025 18:38" or "08 Nov 25 18:38" are in +07:00.
- transaction_type: a short label such as "GrabFood", "GrabCar", \
"Card Payment"

Only completed transactions count. If the email is a pending or scheduled \
order, an order or booking confirmation ("We've received your order", \
"Booking Confirmed", "Đơn hàng đã được nhận"), or promotional, set skip to \
true. [EMAIL], [PHONE], [CARD] and [LINK] are placeholders for removed \
personal data; ignore them.\
"""

_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_CARD = re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b")
_PHONE = re.compile(r"(?:\+?84|0)[0-9]{9,10}\b")
_URL = re.compile(r"https?://\S+")
_FOOTERS = (
    re.compile(r"Unsubscribe.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Click here to unsubscribe.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"You received this email because.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"To stop receiving these emails.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Privacy Policy.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Follow us on.*$", re.IGNORECASE | re.DOTALL),
)


class LlmTransaction(BaseModel):
    """Structured output requested from the model."""

    skip: bool = False
    amount: Decimal | None = Field(default=None, gt=0)
    currency: str = Field(default="VND", pattern=r"^[A-Z]{3}$")
    merchant: str | None = None
    transaction_date: datetime | None = None
    transaction_type: str | None = None


def create_extraction_agent() -> Agent[None, LlmTransaction]:
    """Create a pydantic-ai Agent configured for transaction extraction."""
    # Ensure API key is available (fail fast)
    get_anthropic_api_key()

    model_name = get_llm_model()
    return Agent(
        f"anthropic:{model_name}",
        output_type=LlmTransaction,
        system_prompt=_SYSTEM_PROMPT,
    )


def extract_with_llm(
    subject: str,
    body: str,
    *,
    agent: Agent[None, LlmTransaction] | None = None,
) -> TransactionRecord | None:
    """Ask the model for a transaction; None when it skips or omits fields.

    Accepts an optional agent for dependency injection in tests.
    """
    if agent is None:
        agent = create_extraction_agent()

    prompt = _build_prompt(subject, body)
    result: Any = agent.run_sync(prompt)
    output: LlmTransaction = result.output

    if output.skip:
        logger.info("LLM marked %r as not a completed transaction", subject)
        return None
    if output.amount is None or not (output.merchant or "").strip():
        logger.info("LLM response for %r is missing amount or merchant", subject)
        return None

    transaction_date = output.transaction_date or datetime.now(tz=VIETNAM_TZ)
    if transaction_date.tzinfo is None:
        transaction_date = transaction_date.replace(tzinfo=VIETNAM_TZ)
    transaction_type = (output.transaction_type or "").strip() or "Purchase"
    merchant = (output.merchant or "").strip()

    try:
        return TransactionRecord(
            amount=output.amount,
            currency=output.currency,
            merchant=merchant,
            transaction_date=transaction_date,
            transaction_type=transaction_type,
            category=map_to_category(transaction_type, merchant),
            source=SOURCE,
            email_subject=subject or None,
        )
    except ValidationError:
        logger.warning("Discarding invalid LLM transaction for %r", subject)
        return None


def sanitize_for_llm(text: str) -> str:
    """Replace personal data with placeholders and drop footer boilerplate."""
    sanitized = _EMAIL.sub("[EMAIL]", text)
    sanitized = _CARD.sub("[CARD]", sanitized)
    sanitized = _PHONE.sub("[PHONE]", sanitized)
    for footer in _FOOTERS:
        sanitized = footer.sub("", sanitized)
    sanitized = _URL.sub("[LINK]", sanitized)
    return " ".join(sanitized.split())


def _build_prompt(subject: str, body: str) -> str:
    """Build the user prompt from a sanitized subject and body."""
    clean_body = sanitize_for_llm(html_to_text(body))[:MAX_BODY_CHARS]
    parts = [
        f"Subject: {sanitize_for_llm(subject)}",
        "",
        "--- Email Body ---",
        clean_body or "(no body content)",
    ]
    return "\n".join(parts)
