"""Email-to-expense sync: fetch, parse, dedupe, persist."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from expense_sync.models import SyncSummary
from expense_sync.parsers.registry import parse, template_for_sender
from expense_sync.store import make_dedupe_key

if TYPE_CHECKING:
    from collections.abc import Callable

    from expense_sync.adapters.base import SourceAdapter
    from expense_sync.models import RawEmail, TransactionRecord
    from expense_sync.store import ExpenseStore

    Fallback = Callable[[str, str], TransactionRecord | None]

logger = logging.getLogger(__name__)


def parse_email(
    raw: RawEmail, *, fallback: Fallback | None = None
) -> TransactionRecord | None:
    """Parse one fetched email with the template for its sender.

    The fallback, when given, only sees mail the template declined, and never
    mail the template's status filter rejects.
    """
    template = template_for_sender(raw.sender_address)
    record = None
    if template is not None:
        if template.filtered is not None and template.filtered(
            raw.subject, raw.body
        ):
            logger.debug("Filtered %r from %s", raw.subject, raw.sender_address)
            return None
        record = parse(template.template_id, raw.subject, raw.body)
    else:
        logger.debug("No template for sender %s", raw.sender_address)

    if record is None and fallback is not None:
        record = fallback(raw.subject, raw.body)
    return record


def sync_account(
    adapter: SourceAdapter,
    store: ExpenseStore,
    *,
    fallback: Fallback | None = None,
) -> SyncSummary:
    """Import new transactions from one mailbox into ``store``.

    Every handled message is marked processed, including declined ones, so
    pending orders and promotions are not fetched again. A failure on one
    message is logged and counted; the rest of the batch continues.
    """
    account = adapter.account
    summary = SyncSummary()
    processed = store.processed_ids(account)
    logger.info("%s: %d message(s) already processed", account, len(processed))

    for raw in adapter.fetch_unprocessed(processed):
        summary.fetched += 1
        try:
            record = parse_email(raw, fallback=fallback)
            if record is None:
                summary.declined += 1
                logger.info("Declined %r from %s", raw.subject, raw.sender_address)
                store.mark_processed(account, raw.source_id, raw.subject, None)
                continue

            summary.parsed += 1
            expense_id = store.insert_if_not_exists(record, make_dedupe_key(record))
            if expense_id is None:
                summary.duplicates += 1
                logger.info(
                    "Duplicate expense %s %s at %s",
                    record.amount,
                    record.currency,
                    record.merchant,
                )
            else:
                summary.inserted += 1
                logger.info(
                    "Imported %s %s at %s (%s)",
                    record.amount,
                    record.currency,
                    record.merchant,
                    record.category,
                )
            store.mark_processed(account, raw.source_id, raw.subject, expense_id)
        except Exception:
            summary.failed += 1
            logger.warning(
                "Failed to import message %s", raw.source_id, exc_info=True
            )

    logger.info(
        "%s: fetched=%d inserted=%d duplicates=%d declined=%d failed=%d",
        account,
        summary.fetched,
        summary.inserted,
        summary.duplicates,
        summary.declined,
        summary.failed,
    )
    return summary
