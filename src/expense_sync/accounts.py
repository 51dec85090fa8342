"""Mail account settings with encrypted app-passwords."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from expense_sync.config import ImapConfig
from expense_sync.models import EmailAccount

if TYPE_CHECKING:
    import psycopg

    from expense_sync.cipher import CredentialCipher

logger = logging.getLogger(__name__)

MAX_ACCOUNTS = 3

_COLUMNS = (
    "email_address, app_password, imap_host, imap_port, imap_folder, "
    "trusted_senders, is_enabled, last_sync_at"
)


def to_imap_config(account: EmailAccount, *, since_days: int = 7) -> ImapConfig:
    """Build the IMAP connection settings for a stored account."""
    return ImapConfig(
        host=account.imap_host,
        username=account.email_address,
        password=account.app_password,
        port=account.imap_port,
        folder=account.imap_folder,
        since_days=since_days,
        trusted_senders=tuple(account.trusted_senders),
    )


class EmailAccountStore:
    """Reads and writes mail-sync settings.

    Passwords are encrypted with the injected cipher before they are written
    and decrypted on every read. A stored password that fails to decrypt
    raises DecryptionError; it is never replaced with a blank.
    """

    def __init__(
        self, conn: psycopg.Connection[Any], cipher: CredentialCipher
    ) -> None:
        self.conn = conn
        self.cipher = cipher

    def list_accounts(self, *, enabled_only: bool = False) -> list[EmailAccount]:
        """Return all accounts, oldest first."""
        query = f"SELECT {_COLUMNS} FROM user_email_settings"
        if enabled_only:
            query += " WHERE is_enabled"
        query += " ORDER BY created_at"
        rows = self.conn.execute(query).fetchall()
        return [self._from_row(row) for row in rows]

    def get(self, email_address: str) -> EmailAccount | None:
        """Return one account by address, or None."""
        row = self.conn.execute(
            f"SELECT {_COLUMNS} FROM user_email_settings WHERE email_address = %s",
            (email_address.strip().lower(),),
        ).fetchone()
        return self._from_row(row) if row else None

    def save(self, account: EmailAccount) -> EmailAccount:
        """Insert or update ``account``, re-encrypting its password.

        Raises ValueError when adding a new account beyond MAX_ACCOUNTS.
        """
        existing = self.conn.execute(
            "SELECT 1 FROM user_email_settings WHERE email_address = %s",
            (account.email_address,),
        ).fetchone()
        if existing is None:
            count_row = self.conn.execute(
                "SELECT COUNT(*) AS n FROM user_email_settings"
            ).fetchone()
            if count_row and count_row["n"] >= MAX_ACCOUNTS:
                msg = f"Maximum {MAX_ACCOUNTS} email accounts allowed"
                raise ValueError(msg)

        self.conn.execute(
            """
            INSERT INTO user_email_settings (
                email_address, app_password, imap_host, imap_port, imap_folder,
                trusted_senders, is_enabled
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email_address) DO UPDATE SET
                app_password = EXCLUDED.app_password,
                imap_host = EXCLUDED.imap_host,
                imap_port = EXCLUDED.imap_port,
                imap_folder = EXCLUDED.imap_folder,
                trusted_senders = EXCLUDED.trusted_senders,
                is_enabled = EXCLUDED.is_enabled,
                updated_at = NOW()
            """,
            (
                account.email_address,
                self.cipher.encrypt(account.app_password),
                account.imap_host,
                account.imap_port,
                account.imap_folder,
                account.trusted_senders,
                account.is_enabled,
            ),
        )
        self.conn.commit()
        logger.info("Saved email settings for %s", account.email_address)
        return account

    def delete(self, email_address: str) -> bool:
        """Remove an account and its encrypted password. True if one existed."""
        cursor = self.conn.execute(
            "DELETE FROM user_email_settings WHERE email_address = %s",
            (email_address.strip().lower(),),
        )
        self.conn.commit()
        return bool(cursor.rowcount)

    def touch_last_sync(self, email_address: str) -> None:
        """Stamp the account's last successful sync time."""
        self.conn.execute(
            "UPDATE user_email_settings SET last_sync_at = NOW() "
            "WHERE email_address = %s",
            (email_address,),
        )
        self.conn.commit()

    def _from_row(self, row: dict[str, Any]) -> EmailAccount:
        return EmailAccount(
            email_address=row["email_address"],
            app_password=self.cipher.decrypt(row["app_password"]),
            imap_host=row["imap_host"],
            imap_port=row["imap_port"],
            imap_folder=row["imap_folder"],
            trusted_senders=list(row["trusted_senders"] or []),
            is_enabled=row["is_enabled"],
            last_sync_at=row["last_sync_at"],
        )
