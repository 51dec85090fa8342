"""Domain models for transaction email syncing."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TRUSTED_SENDERS = ("info@card.vib.com.vn", "no-reply@grab.com")


class Category(StrEnum):
    """Closed set of spending categories."""

    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS = "Bills"
    HEALTH = "Health"
    OTHER = "Other"


@dataclass
class RawEmail:
    """A single message fetched from a mail source."""

    source_id: str
    subject: str
    sender: str
    sender_address: str
    date: datetime
    html_body: str | None = None
    text_body: str | None = None

    @property
    def body(self) -> str:
        """Text body when present, otherwise the HTML body."""
        return self.text_body or self.html_body or ""


class TransactionRecord(BaseModel):
    """A completed transaction extracted from one email."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(gt=0)
    currency: str = Field(default="VND", pattern=r"^[A-Z]{3}$")
    merchant: str = Field(min_length=1)
    transaction_date: datetime
    transaction_type: str
    category: Category
    source: str
    email_subject: str | None = None

    @field_validator("merchant")
    @classmethod
    def _merchant_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            msg = "merchant must not be blank"
            raise ValueError(msg)
        return stripped


class EmailAccount(BaseModel):
    """Mail-sync settings for one mailbox."""

    email_address: str = Field(min_length=3)
    app_password: str = Field(min_length=1)
    imap_host: str = "imap.gmail.com"
    imap_port: int = Field(default=993, gt=0, lt=65536)
    imap_folder: str = "INBOX"
    is_enabled: bool = True
    trusted_senders: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRUSTED_SENDERS)
    )
    last_sync_at: datetime | None = None

    @field_validator("email_address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("trusted_senders")
    @classmethod
    def _normalize_senders(cls, value: list[str]) -> list[str]:
        return [s.strip().lower() for s in value if s.strip()]


@dataclass
class SyncSummary:
    """Outcome counters for one sync run."""

    fetched: int = 0
    parsed: int = 0
    inserted: int = 0
    duplicates: int = 0
    declined: int = 0
    failed: int = 0

    def merge(self, other: SyncSummary) -> SyncSummary:
        """Return a new summary adding ``other``'s counters to this one."""
        return SyncSummary(
            fetched=self.fetched + other.fetched,
            parsed=self.parsed + other.parsed,
            inserted=self.inserted + other.inserted,
            duplicates=self.duplicates + other.duplicates,
            declined=self.declined + other.declined,
            failed=self.failed + other.failed,
        )
