"""Database connection helper and table bootstrap."""

from __future__ import annotations

import psycopg
from psycopg.rows import dict_row

from expense_sync.config import get_database_url

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS expenses (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        dedupe_key TEXT NOT NULL UNIQUE,
        transaction_type TEXT NOT NULL,
        amount NUMERIC(15, 2) NOT NULL CHECK (amount > 0),
        currency CHAR(3) NOT NULL DEFAULT 'VND',
        transaction_date TIMESTAMPTZ NOT NULL,
        merchant TEXT NOT NULL,
        category TEXT NOT NULL,
        source TEXT NOT NULL,
        email_subject TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS processed_emails (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        email_account TEXT NOT NULL,
        email_uid TEXT NOT NULL,
        subject TEXT,
        expense_id UUID REFERENCES expenses(id) ON DELETE SET NULL,
        processed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (email_account, email_uid)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_email_settings (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        email_address TEXT NOT NULL UNIQUE,
        app_password TEXT NOT NULL,
        imap_host TEXT NOT NULL DEFAULT 'imap.gmail.com',
        imap_port INTEGER NOT NULL DEFAULT 993,
        imap_folder TEXT NOT NULL DEFAULT 'INBOX',
        trusted_senders TEXT[] NOT NULL,
        is_enabled BOOLEAN NOT NULL DEFAULT TRUE,
        last_sync_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
)


def get_connection() -> psycopg.Connection[dict[str, object]]:
    """Create and return a new database connection."""
    return psycopg.connect(get_database_url(), row_factory=dict_row)


def ensure_schema(conn: psycopg.Connection[dict[str, object]]) -> None:
    """Create the expense, processed-email and settings tables if missing."""
    with conn.transaction():
        for statement in SCHEMA_STATEMENTS:
            conn.execute(statement)
