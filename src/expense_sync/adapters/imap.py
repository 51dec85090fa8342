"""IMAP source adapter."""

from __future__ import annotations

import hashlib
import imaplib
import logging
from datetime import UTC, datetime, timedelta
from email import message_from_bytes
from email.header import decode_header
from email.utils import parseaddr, parsedate_to_datetime
from typing import TYPE_CHECKING, cast

from expense_sync.models import RawEmail

if TYPE_CHECKING:
    from collections.abc import Iterator
    from email.message import Message

    from expense_sync.config import ImapConfig

logger = logging.getLogger(__name__)


class ImapAdapter:
    """Fetch unprocessed notification emails from trusted senders."""

    def __init__(self, config: ImapConfig) -> None:
        self.config = config
        self.trusted_senders = frozenset(s.lower() for s in config.trusted_senders)

    @property
    def account(self) -> str:
        """Mailbox identity used to scope processed-message ids."""
        return self.config.username.lower()

    def fetch_unprocessed(self, processed_ids: set[str]) -> Iterator[RawEmail]:
        """Connect to IMAP, search trusted senders, yield unprocessed messages."""
        conn: imaplib.IMAP4_SSL | None = None
        try:
            conn = self._connect()
            msg_ids = self._search_trusted(conn)
            logger.info(
                "Found %d candidate message(s) from trusted senders", len(msg_ids)
            )

            for msg_id in msg_ids:
                raw_email = self._fetch_message(conn, msg_id)
                if raw_email is None:
                    continue

                msg = message_from_bytes(raw_email)
                source_id = self._get_message_id(msg)

                if source_id in processed_ids:
                    logger.debug("Skipping already-processed message %s", source_id)
                    continue

                address = self._sender_address(msg)
                if address not in self.trusted_senders:
                    logger.warning("Skipping email from untrusted sender %s", address)
                    continue

                try:
                    yield self._parse_message(msg, source_id, address)
                except Exception:
                    logger.warning(
                        "Failed to parse message %s", source_id, exc_info=True
                    )
        finally:
            if conn is not None:
                try:
                    conn.logout()
                except Exception:
                    logger.debug("Error during IMAP logout", exc_info=True)

    def _connect(self) -> imaplib.IMAP4_SSL:
        """Establish an IMAP4_SSL connection and authenticate."""
        conn = imaplib.IMAP4_SSL(self.config.host, self.config.port)
        conn.login(self.config.username, self.config.password)
        return conn

    def _search_trusted(self, conn: imaplib.IMAP4_SSL) -> list[bytes]:
        """Select the folder and return ids of recent mail from trusted senders.

        One SEARCH per sender; ids are de-duplicated and returned in mailbox
        order.
        """
        conn.select(self.config.folder, readonly=True)
        since = datetime.now(tz=UTC) - timedelta(days=self.config.since_days)
        since_str = since.strftime("%d-%b-%Y")

        found: set[bytes] = set()
        for sender in sorted(self.trusted_senders):
            _status, data = conn.search(None, "SINCE", since_str, "FROM", f'"{sender}"')
            raw = data[0] if data else None
            if raw:
                found.update(cast("list[bytes]", raw.split()))
        return sorted(found, key=int)

    def _fetch_message(self, conn: imaplib.IMAP4_SSL, msg_id: bytes) -> bytes | None:
        """Fetch a single message by sequence number."""
        _status, data = conn.fetch(msg_id.decode(), "(RFC822)")
        if not data or data[0] is None:
            return None
        part = data[0]
        if isinstance(part, tuple):
            return part[1]
        return None

    def _parse_message(self, msg: Message, source_id: str, address: str) -> RawEmail:
        """Convert an email Message to a RawEmail."""
        subject = self._decode_header_value(msg.get("Subject", ""))
        sender = self._decode_header_value(msg.get("From", ""))

        date_str = msg.get("Date")
        email_date = parsedate_to_datetime(date_str) if date_str else None

        html_body, text_body = self._extract_bodies(msg)

        return RawEmail(
            source_id=source_id,
            subject=subject,
            sender=sender,
            sender_address=address,
            date=email_date or datetime.now(tz=UTC),
            html_body=html_body,
            text_body=text_body,
        )

    @staticmethod
    def _sender_address(msg: Message) -> str:
        """Return the bare, lower-cased From address."""
        _name, address = parseaddr(str(msg.get("From", "")))
        return address.strip().lower()

    @staticmethod
    def _get_message_id(msg: Message) -> str:
        """Extract a unique identifier for the message.

        Uses the Message-ID header if present; falls back to a hash
        of subject + date + sender.
        """
        message_id = msg.get("Message-ID")
        if message_id:
            return message_id.strip()

        subject = msg.get("Subject", "")
        date = msg.get("Date", "")
        sender = msg.get("From", "")
        key = f"{subject}|{date}|{sender}"
        return hashlib.sha256(key.encode()).hexdigest()

    @staticmethod
    def _decode_header_value(value: str | None) -> str:
        """Decode an RFC 2047 encoded header value."""
        if not value:
            return ""
        parts = decode_header(value)
        decoded_parts: list[str] = []
        for data, charset in parts:
            if isinstance(data, bytes):
                decoded_parts.append(data.decode(charset or "utf-8", errors="replace"))
            else:
                decoded_parts.append(data)
        return "".join(decoded_parts)

    @staticmethod
    def _extract_bodies(msg: Message) -> tuple[str | None, str | None]:
        """Walk the MIME tree and return the first HTML and text bodies."""
        html_body: str | None = None
        text_body: str | None = None

        parts = msg.walk() if msg.is_multipart() else [msg]
        for part in parts:
            if part.get_content_maintype() == "multipart":
                continue
            disposition = str(part.get("Content-Disposition", ""))
            if part.get_filename() or "attachment" in disposition.lower():
                continue

            raw_payload = part.get_payload(decode=True)
            if raw_payload is None:
                continue
            payload = cast("bytes", raw_payload)
            charset = part.get_content_charset() or "utf-8"

            content_type = part.get_content_type()
            if content_type == "text/html" and html_body is None:
                html_body = payload.decode(charset, errors="replace")
            elif content_type == "text/plain" and text_body is None:
                text_body = payload.decode(charset, errors="replace")

        return html_body, text_body
