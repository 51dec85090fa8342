"""Grab receipts: GrabFood/GrabMart orders and GrabCar/GrabBike rides."""

from __future__ import annotations

import logging
import re

from expense_sync.models import TransactionRecord
from expense_sync.parsers.base import EmailTemplate
from expense_sync.parsers.categories import map_to_category
from expense_sync.parsers.fields import (
    DMON_YY,
    DMON_YYYY,
    DMY_SLASH,
    clean_merchant,
    combine,
    find_date,
    find_time,
    html_to_text,
    parse_amount,
)

logger = logging.getLogger(__name__)

SOURCE = "grab_email"
SENDERS = ("no-reply@grab.com",)
DATE_LAYOUTS = (DMON_YY, DMON_YYYY, DMY_SLASH)

RIDE_TYPES = frozenset({"GrabCar", "GrabBike"})

# Orders that are not completed yet must never become expenses.
_PENDING = re.compile(
    r"\bpending\b|\bscheduled\b|\bfor later\b|we['’]ve received your order"
    r"|đơn hàng đã được nhận|đang chờ",
    re.IGNORECASE,
)

_CURRENCY = r"(?:₫|VND|VNĐ|đ)"
# Whole word only: "Subtotal" is the amount before fees.
_TOTAL_LABEL = r"(?<!\w)(?:Tổng cộng|Tổng tiền|Total)\b"
_AMOUNT = re.compile(
    rf"{_TOTAL_LABEL}[^\d\n]{{0,30}}?{_CURRENCY}\s*(?P<before>\d[\d.,]*)"
    rf"|{_TOTAL_LABEL}[^\d\n]{{0,30}}?(?P<after>\d[\d.,]*)\s*{_CURRENCY}",
    re.IGNORECASE,
)
# Ride receipts say "Pick-up from <address>"; only order anchors name a merchant.
_MERCHANT = re.compile(
    r"(?:(?:Đặt từ|Ordered from)\b[ \t:]+|^[ \t]*From[ \t]*:[ \t]*)"
    r"(?P<merchant>[^\n]+)",
    re.IGNORECASE | re.MULTILINE,
)

# Checked in order against the subject and body.
_TYPE_MARKERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"grab\s*mart", re.IGNORECASE), "GrabMart"),
    (re.compile(r"grab\s*food", re.IGNORECASE), "GrabFood"),
    (re.compile(r"grab\s*bike|\bbike\b", re.IGNORECASE), "GrabBike"),
    (
        re.compile(r"grab\s*car\b|\bcar\b|\btrip\b|chuyến đi", re.IGNORECASE),
        "GrabCar",
    ),
    (re.compile(r"grab\s*express", re.IGNORECASE), "GrabExpress"),
)


def detect_type(subject: str, body: str, *, has_order_anchor: bool) -> str:
    """Return the Grab service label for this receipt."""
    text = f"{subject}\n{body}"
    for pattern, label in _TYPE_MARKERS:
        if pattern.search(text):
            return label
    return "GrabFood" if has_order_anchor else "Grab"


def is_pending(subject: str, body: str) -> bool:
    """True when the email describes an order that has not completed."""
    return bool(_PENDING.search(subject) or _PENDING.search(body))


def is_pending_email(subject: str, body: str) -> bool:
    """``is_pending`` for a raw email whose body may be HTML."""
    return is_pending(html_to_text(subject), html_to_text(body))


def _find_amount(text: str) -> str | None:
    match = _AMOUNT.search(text)
    if match is None:
        return None
    return match.group("before") or match.group("after")


def extract(subject: str, body: str) -> TransactionRecord | None:
    """Parse a Grab receipt. Pending or scheduled orders always decline."""
    subject = html_to_text(subject)
    text = html_to_text(body)

    if is_pending(subject, text):
        logger.debug("Grab: skipping pending order %r", subject)
        return None

    token = _find_amount(text)
    amount = parse_amount(token) if token else None
    if amount is None:
        logger.debug("Grab: no amount in %r", subject)
        return None

    merchant_match = _MERCHANT.search(text)
    merchant = (
        clean_merchant(merchant_match.group("merchant")) if merchant_match else None
    )
    transaction_type = detect_type(
        subject, text, has_order_anchor=merchant is not None
    )
    if merchant is None and transaction_type in RIDE_TYPES:
        merchant = transaction_type
    if merchant is None:
        logger.debug("Grab: no merchant in %r", subject)
        return None

    day = find_date(text, DATE_LAYOUTS)
    moment = find_time(text)
    if day is None or moment is None:
        logger.debug("Grab: no transaction date/time in %r", subject)
        return None

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
    template_id="Grab",
    source=SOURCE,
    senders=SENDERS,
    extract=extract,
    filtered=is_pending_email,
)
