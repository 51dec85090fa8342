"""Email template contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from expense_sync.models import TransactionRecord


class Extractor(Protocol):
    """Turns one email's subject and body into a record, or declines."""

    def __call__(self, subject: str, body: str) -> TransactionRecord | None: ...


class StatusFilter(Protocol):
    """True when an email must never become an expense, by any extractor."""

    def __call__(self, subject: str, body: str) -> bool: ...


@dataclass(frozen=True)
class EmailTemplate:
    """A named extraction ruleset for one sender's notification format.

    ``filtered`` marks mail the sender sends about transactions that have not
    happened (pending or scheduled orders). Such mail is declined outright and
    is not handed to any fallback extractor.
    """

    template_id: str
    source: str
    senders: tuple[str, ...]
    extract: Extractor
    filtered: StatusFilter | None = None
