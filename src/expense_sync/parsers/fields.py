"""Field extraction helpers shared by the email templates.

Nothing here raises on malformed text: every finder returns ``None`` when
the field is absent or unusable, and the template decides what that means.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from html.parser import HTMLParser
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

VIETNAM_TZ = timezone(timedelta(hours=7), "ICT")

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
_MONTH_ALT = "|".join(_MONTHS)

# Named date layouts. Each regex exposes day/month/year groups.
DMY_SLASH = "dd/mm/yyyy"
DMON_YY = "dd mon yy"
DMON_YYYY = "dd mon yyyy"

_DATE_PATTERNS: dict[str, re.Pattern[str]] = {
    DMY_SLASH: re.compile(
        r"(?<!\d)(?P<day>\d{1,2})/(?P<month>\d{1,2})/(?P<year>\d{4})(?!\d)"
    ),
    DMON_YY: re.compile(
        rf"(?<!\d)(?P<day>\d{{1,2}})\s+(?P<month>{_MONTH_ALT})[a-z]*\.?\s+"
        r"(?P<year>\d{2})(?![\d:])",
        re.IGNORECASE,
    ),
    DMON_YYYY: re.compile(
        rf"(?<!\d)(?P<day>\d{{1,2}})\s+(?P<month>{_MONTH_ALT})[a-z]*\.?,?\s+"
        r"(?P<year>\d{4})(?!\d)",
        re.IGNORECASE,
    ),
}

_TIME = re.compile(
    r"(?<![\d:])(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?(?![\d:])"
)

_HTML_TAG = re.compile(r"<\s*/?\s*[a-zA-Z][^>]*>")
_GROUPED_THOUSANDS = re.compile(r"^\d{1,3}(?:[.,]\d{3})+$")
_DECIMAL_TAIL = re.compile(r"^(?P<whole>\d[\d.,]*?)[.,](?P<frac>\d{1,2})$")
_TRAILING_PUNCT = ".,;:!-–|"

_BLOCK_TAGS = frozenset({"br", "p", "div", "tr", "li", "table", "h1", "h2", "h3", "h4"})
_CELL_TAGS = frozenset({"td", "th"})


def html_to_text(body: str) -> str:
    """Return ``body`` as NFC-normalized plain text, one block element per line.

    Vietnamese mail often arrives with decomposed diacritics, which would not
    match the composed anchor phrases.
    """
    body = unicodedata.normalize("NFC", body)
    if not _HTML_TAG.search(body):
        return body
    stripper = _HTMLTextExtractor()
    stripper.feed(body)
    stripper.close()
    return stripper.get_text()


class _HTMLTextExtractor(HTMLParser):
    """HTMLParser subclass that keeps text and turns block tags into newlines."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in ("style", "script"):
            self._skip_depth += 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")
        elif tag in _CELL_TAGS:
            self._parts.append(" ")

    def handle_endtag(self, tag: str) -> None:
        if tag in ("style", "script"):
            self._skip_depth = max(0, self._skip_depth - 1)
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._parts.append(data)

    def get_text(self) -> str:
        lines = (" ".join(line.split()) for line in "".join(self._parts).splitlines())
        return "\n".join(line for line in lines if line)


def parse_amount(token: str) -> Decimal | None:
    """Parse a money token such as ``120,000`` or ``85.000`` into a Decimal.

    Groups of three digits after ``,`` or ``.`` are thousands separators; a
    final separator followed by one or two digits is a decimal part.
    """
    cleaned = token.strip().rstrip(".,")
    if not cleaned or not cleaned[0].isdigit():
        return None

    if _GROUPED_THOUSANDS.match(cleaned):
        normalized = re.sub(r"[.,]", "", cleaned)
    else:
        tail = _DECIMAL_TAIL.match(cleaned)
        if tail:
            whole = re.sub(r"[.,]", "", tail.group("whole"))
            normalized = f"{whole}.{tail.group('frac')}"
        else:
            normalized = re.sub(r"[.,]", "", cleaned)

    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def find_date(text: str, layouts: Sequence[str]) -> date | None:
    """Return the first date found using ``layouts`` in priority order."""
    for layout in layouts:
        pattern = _DATE_PATTERNS[layout]
        for match in pattern.finditer(text):
            parsed = _build_date(match)
            if parsed is not None:
                return parsed
    return None


def _build_date(match: re.Match[str]) -> date | None:
    month_token = match.group("month")
    if month_token.isdigit():
        month = int(month_token)
    else:
        month = _MONTHS.get(month_token[:3].lower(), 0)
    year = int(match.group("year"))
    if year < 100:
        year += 2000
    try:
        return date(year, month, int(match.group("day")))
    except ValueError:
        return None


def find_time(text: str) -> time | None:
    """Return the first valid ``HH:MM[:SS]`` time of day in ``text``."""
    for match in _TIME.finditer(text):
        hour = int(match.group("hour"))
        minute = int(match.group("minute"))
        second = int(match.group("second") or 0)
        if hour < 24 and minute < 60 and second < 60:
            return time(hour, minute, second)
    return None


def combine(day: date, moment: time) -> datetime:
    """Join a date and a time of day into a Vietnam-local timestamp."""
    return datetime.combine(day, moment, tzinfo=VIETNAM_TZ)


def clean_merchant(text: str | None) -> str | None:
    """Trim whitespace and trailing punctuation; empty becomes ``None``."""
    if text is None:
        return None
    cleaned = " ".join(text.split()).rstrip(_TRAILING_PUNCT).strip()
    return cleaned or None
