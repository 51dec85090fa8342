"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from expense_sync.cipher import CredentialCipher
from expense_sync.config import ImapConfig
from expense_sync.models import RawEmail

VIB_BODY_VI = """
      Giao dịch: Thanh toán thẻ
      Giá trị: 120,000 VND
      Vào lúc: 14:30 08/11/2025
      Tại Circle K Nguyen Hue
"""

GRAB_FOOD_BODY = """
      Đặt từ Pizza Hut District 1
      Tổng cộng ₫120,000
      08 Nov 25 18:38
"""


@pytest.fixture(scope="session")
def cipher() -> CredentialCipher:
    """A cipher built from a fixed test passphrase (derived once per session)."""
    return CredentialCipher.from_passphrase("test-passphrase")


@pytest.fixture
def imap_config() -> ImapConfig:
    """Provide a test IMAP configuration."""
    return ImapConfig(
        host="imap.example.com",
        username="Test@example.com",
        password="secret",  # pragma: allowlist secret
        port=993,
        folder="INBOX",
    )


@pytest.fixture
def vib_email() -> RawEmail:
    """A fetched VIB card alert."""
    return RawEmail(
        source_id="<vib-1@card.vib.com.vn>",
        subject="Thong bao giao dich",
        sender="VIB <info@card.vib.com.vn>",
        sender_address="info@card.vib.com.vn",
        date=datetime(2025, 11, 8, 7, 31, 0, tzinfo=UTC),
        text_body=VIB_BODY_VI,
    )


@pytest.fixture
def grab_email() -> RawEmail:
    """A fetched GrabFood receipt."""
    return RawEmail(
        source_id="<grab-1@grab.com>",
        subject="Your GrabFood receipt",
        sender="Grab <no-reply@grab.com>",
        sender_address="no-reply@grab.com",
        date=datetime(2025, 11, 8, 11, 40, 0, tzinfo=UTC),
        text_body=GRAB_FOOD_BODY,
    )
