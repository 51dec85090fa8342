"""Expense record store abstraction and PostgreSQL implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from slugify import slugify

if TYPE_CHECKING:
    from uuid import UUID

    import psycopg

    from expense_sync.models import TransactionRecord


def make_dedupe_key(record: TransactionRecord) -> str:
    """Identify a transaction by source, time, merchant and amount.

    Format: {source}:{iso timestamp}:{merchant slug}:{amount}
    """
    merchant = str(slugify(record.merchant, max_length=50)) or "unknown"
    amount = format(record.amount.normalize(), "f")
    return (
        f"{record.source}:{record.transaction_date.isoformat()}:{merchant}:{amount}"
    )


class ExpenseStore(Protocol):
    """Protocol for expense persistence backends."""

    def processed_ids(self, account: str) -> set[str]: ...

    def insert_if_not_exists(
        self, record: TransactionRecord, dedupe_key: str
    ) -> UUID | None: ...

    def mark_processed(
        self,
        account: str,
        source_id: str,
        subject: str | None,
        expense_id: UUID | None,
    ) -> None: ...


class PostgresExpenseStore:
    """PostgreSQL implementation of ExpenseStore.

    Tables: expenses (unique dedupe_key) and processed_emails
    (unique email_account, email_uid).

    Each write runs in its own ``conn.transaction()`` block, so a failed
    statement is rolled back and the connection stays usable for the next
    message in the batch.
    """

    def __init__(self, conn: psycopg.Connection[Any]) -> None:
        self.conn = conn

    def processed_ids(self, account: str) -> set[str]:
        """Return message ids already handled for ``account``."""
        rows = self.conn.execute(
            "SELECT email_uid FROM processed_emails WHERE email_account = %s",
            (account,),
        ).fetchall()
        return {row["email_uid"] for row in rows}

    def insert_if_not_exists(
        self, record: TransactionRecord, dedupe_key: str
    ) -> UUID | None:
        """Insert ``record``; return its id, or None if the key already exists."""
        with self.conn.transaction():
            row = self.conn.execute(
                """
                INSERT INTO expenses (
                    dedupe_key, transaction_type, amount, currency,
                    transaction_date, merchant, category, source, email_subject
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (dedupe_key) DO NOTHING
                RETURNING id
                """,
                (
                    dedupe_key,
                    record.transaction_type,
                    record.amount,
                    record.currency,
                    record.transaction_date,
                    record.merchant,
                    str(record.category),
                    record.source,
                    record.email_subject,
                ),
            ).fetchone()
        self.conn.commit()
        return row["id"] if row else None

    def mark_processed(
        self,
        account: str,
        source_id: str,
        subject: str | None,
        expense_id: UUID | None,
    ) -> None:
        """Record that a message was handled so it is not fetched again."""
        with self.conn.transaction():
            self.conn.execute(
                """
                INSERT INTO processed_emails
                    (email_account, email_uid, subject, expense_id)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (email_account, email_uid) DO NOTHING
                """,
                (account, source_id, subject, expense_id),
            )
        self.conn.commit()
