"""VIB card transaction alerts (Vietnamese and English)."""

from __future__ import annotations

import logging
import re

from expense_sync.models import TransactionRecord
from expense_sync.parsers.base import EmailTemplate
from expense_sync.parsers.categories import map_to_category
from expense_sync.parsers.fields import (
    DMON_YY,
    DMY_SLASH,
    clean_merchant,
    combine,
    find_date,
    find_time,
    html_to_text,
    parse_amount,
)

logger = logging.getLogger(__name__)

SOURCE = "vib_email"
SENDERS = ("info@card.vib.com.vn",)
DEFAULT_TYPE = "Card Payment"
DATE_LAYOUTS = (DMY_SLASH, DMON_YY)

_AMOUNT = re.compile(
    r"(?:Giá trị|Số tiền|Value|Amount)\s*:\s*"
    r"(?P<amount>\d[\d.,]*)\s*(?:VND|VNĐ)\b",
    re.IGNORECASE,
)
# "At: 12:45 ..." is the time line; the merchant line has no colon after At.
_MERCHANT = re.compile(
    r"^[ \t]*(?:Tại|At)(?![ \t]*:)[ \t]+(?P<merchant>[^\n]+)$",
    re.MULTILINE | re.IGNORECASE,
)
_TYPE = re.compile(
    r"^[ \t]*(?:Giao dịch|Transaction)[ \t]*:[ \t]*(?P<type>[^\n]+)$",
    re.MULTILINE | re.IGNORECASE,
)


def extract(subject: str, body: str) -> TransactionRecord | None:
    """Parse a VIB alert. Returns None unless amount, merchant and time all match."""
    text = html_to_text(body)

    amount_match = _AMOUNT.search(text)
    amount = parse_amount(amount_match.group("amount")) if amount_match else None
    if amount is None:
        logger.debug("VIB: no amount in %r", subject)
        return None

    merchant_match = _MERCHANT.search(text)
    merchant = (
        clean_merchant(merchant_match.group("merchant")) if merchant_match else None
    )
    if merchant is None:
        logger.debug("VIB: no merchant in %r", subject)
        return None

    day = find_date(text, DATE_LAYOUTS)
    moment = find_time(text)
    if day is None or moment is None:
        logger.debug("VIB: no transaction date/time in %r", subject)
        return None

    type_match = _TYPE.search(text)
    transaction_type = (
        clean_merchant(type_match.group("type")) if type_match else None
    ) or DEFAULT_TYPE

    return TransactionRecord(
        amount=amount,
        currency="VND",
        merchant=merchant,
        transaction_date=combine(day, moment),
        transaction_type=transaction_type,
        category=map_to_category(transaction_type, merchant),
        source=SOURCE,
        email_subject=subject or None,
    )


TEMPLATE = EmailTemplate(
    template_id="VIB",
    source=SOURCE,
    senders=SENDERS,
    extract=extract,
)
