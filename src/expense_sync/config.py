"""Configuration via environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from expense_sync.models import DEFAULT_TRUSTED_SENDERS

load_dotenv()

logger = logging.getLogger(__name__)

# Development-only passphrase. Never used when APP_ENV=production.
DEV_ENCRYPTION_KEY = "default-key-please-change-in-production!!!"


@dataclass(frozen=True)
class ImapConfig:
    """IMAP connection configuration."""

    host: str
    username: str
    password: str
    port: int = 993
    folder: str = "INBOX"
    since_days: int = 7
    trusted_senders: tuple[str, ...] = field(default=DEFAULT_TRUSTED_SENDERS)


def get_database_url() -> str:
    """Return the DATABASE_URL from the environment."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        msg = "DATABASE_URL environment variable is required"
        raise ValueError(msg)
    return url


def is_production() -> bool:
    """True when APP_ENV names a production deployment."""
    return os.environ.get("APP_ENV", "development").strip().lower() in {
        "prod",
        "production",
    }


def get_encryption_key() -> str:
    """Return the passphrase used to derive the credential cipher key.

    Falls back to DEV_ENCRYPTION_KEY outside production; in production a
    missing EMAIL_ENCRYPTION_KEY is an error.
    """
    key = os.environ.get("EMAIL_ENCRYPTION_KEY")
    if key:
        return key
    if is_production():
        msg = "EMAIL_ENCRYPTION_KEY environment variable is required in production"
        raise ValueError(msg)
    logger.warning(
        "EMAIL_ENCRYPTION_KEY not set; using the development fallback key"
    )
    return DEV_ENCRYPTION_KEY


def get_trusted_senders() -> tuple[str, ...]:
    """Return TRUSTED_SENDERS as lower-cased addresses.

    Comma-separated; defaults to the VIB and Grab notification senders.
    """
    raw = os.environ.get("TRUSTED_SENDERS")
    if not raw:
        return DEFAULT_TRUSTED_SENDERS
    senders = tuple(s.strip().lower() for s in raw.split(",") if s.strip())
    return senders or DEFAULT_TRUSTED_SENDERS


def has_imap_config() -> bool:
    """Whether an environment-configured mailbox is present."""
    return bool(os.environ.get("IMAP_USERNAME") and os.environ.get("IMAP_PASSWORD"))


def get_imap_config() -> ImapConfig:
    """Build IMAP configuration from environment variables.

    Required: IMAP_HOST, IMAP_USERNAME, IMAP_PASSWORD
    Optional: IMAP_PORT (default 993), IMAP_FOLDER (default INBOX),
    IMAP_SINCE_DAYS (default 7), TRUSTED_SENDERS
    """
    host = os.environ.get("IMAP_HOST")
    username = os.environ.get("IMAP_USERNAME")
    password = os.environ.get("IMAP_PASSWORD")

    missing = []
    if not host:
        missing.append("IMAP_HOST")
    if not username:
        missing.append("IMAP_USERNAME")
    if not password:
        missing.append("IMAP_PASSWORD")

    if missing:
        msg = f"Required environment variables not set: {', '.join(missing)}"
        raise ValueError(msg)

    port = int(os.environ.get("IMAP_PORT", "993"))
    folder = os.environ.get("IMAP_FOLDER", "INBOX")
    since_days = int(os.environ.get("IMAP_SINCE_DAYS", "7"))

    return ImapConfig(
        host=host,  # type: ignore[arg-type]
        username=username,  # type: ignore[arg-type]
        password=password,  # type: ignore[arg-type]
        port=port,
        folder=folder,
        since_days=since_days,
        trusted_senders=get_trusted_senders(),
    )


def get_anthropic_api_key() -> str:
    """Return the ANTHROPIC_API_KEY from the environment."""
    key = os.environ.get("ANTHROPIC_API_KEY")
    if not key:
        msg = "ANTHROPIC_API_KEY environment variable is required"
        raise ValueError(msg)
    return key


def get_llm_model() -> str:
    """Return the LLM model identifier.

    Defaults to claude-haiku-4-5-20251001.
    """
    return os.environ.get("LLM_MODEL", "claude-haiku-4-5-20251001")
