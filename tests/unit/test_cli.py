"""Tests for the expense-sync CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from expense_sync.cipher import DecryptionError
from expense_sync.cli import cli
from expense_sync.models import EmailAccount, SyncSummary

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

VIB_BODY = """
  Giao dịch: Thanh toán thẻ
  Giá trị: 120,000 VND
  Vào lúc: 14:30 08/11/2025
  Tại Circle K Nguyen Hue
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def account_store() -> Iterator[MagicMock]:
    """Patch the DB connection, cipher and account store used by commands."""
    store = MagicMock()
    with (
        patch("expense_sync.cli._connect"),
        patch("expense_sync.cli._cipher"),
        patch("expense_sync.accounts.EmailAccountStore", return_value=store),
    ):
        yield store


@pytest.fixture
def no_env_mailbox(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("IMAP_USERNAME", raising=False)
    monkeypatch.delenv("IMAP_PASSWORD", raising=False)


class TestCategorize:
    """Tests for the categorize command."""

    def test_prints_category(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["categorize", "GrabFood", "KFC"])
        assert result.exit_code == 0
        assert result.output.strip() == "Food"

    def test_unmatched_is_other(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["categorize", "Card Payment", "Nobody"])
        assert result.output.strip() == "Other"


class TestParse:
    """Tests for the parse command."""

    def test_stdin(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli, ["parse", "vib", "--subject", "Thong bao"], input=VIB_BODY
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["merchant"] == "Circle K Nguyen Hue"
        assert data["amount"] == "120000"
        assert data["transaction_date"] == "2025-11-08T14:30:00+07:00"
        assert data["source"] == "vib_email"

    def test_file_argument(self, runner: CliRunner, tmp_path: Path) -> None:
        body = tmp_path / "receipt.txt"
        body.write_text(
            "Đặt từ KFC\nTổng cộng ₫85,000\n24/11/2025 13:30", encoding="utf-8"
        )

        result = runner.invoke(cli, ["parse", "GRAB", str(body)])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["category"] == "Food"

    def test_no_transaction_exits_1(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["parse", "VIB"], input="Hello there")

        assert result.exit_code == 1
        assert "No transaction found." in result.output

    def test_unknown_template_rejected(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["parse", "ACME"], input=VIB_BODY)
        assert result.exit_code == 2


@pytest.mark.usefixtures("no_env_mailbox")
class TestSync:
    """Tests for the sync command."""

    def test_no_accounts(self, runner: CliRunner, account_store: MagicMock) -> None:
        account_store.list_accounts.return_value = []

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "No email accounts configured" in result.output

    def test_syncs_stored_accounts(
        self, runner: CliRunner, account_store: MagicMock
    ) -> None:
        account_store.list_accounts.return_value = [
            EmailAccount(
                email_address="me@gmail.com",
                app_password="pw",  # pragma: allowlist secret
            )
        ]
        summary = SyncSummary(fetched=3, parsed=2, inserted=1, duplicates=1, declined=1)

        with (
            patch("expense_sync.adapters.imap.ImapAdapter") as mock_adapter,
            patch("expense_sync.sync.sync_account", return_value=summary),
        ):
            result = runner.invoke(cli, ["sync", "--since-days", "30"])

        assert result.exit_code == 0, result.output
        assert (
            "Synced 1 new expense(s) (1 duplicate(s), 1 skipped, 0 failed) "
            "from 1 account(s)."
        ) in result.output
        config = mock_adapter.call_args[0][0]
        assert config.username == "me@gmail.com"
        assert config.since_days == 30
        account_store.list_accounts.assert_called_once_with(enabled_only=True)
        account_store.touch_last_sync.assert_called_once_with("me@gmail.com")

    def test_undecryptable_password(
        self, runner: CliRunner, account_store: MagicMock
    ) -> None:
        account_store.list_accounts.side_effect = DecryptionError("bad padding")

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "Cannot decrypt a stored mail password" in result.output

    def test_since_days_must_be_positive(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["sync", "--since-days", "0"])
        assert result.exit_code == 2


class TestAccounts:
    """Tests for the accounts command group."""

    def test_add(self, runner: CliRunner, account_store: MagicMock) -> None:
        result = runner.invoke(
            cli,
            ["accounts", "add", "Me@Gmail.com", "--password", "abcd efgh"],
        )

        assert result.exit_code == 0, result.output
        assert "Saved me@gmail.com." in result.output
        saved = account_store.save.call_args[0][0]
        assert saved.email_address == "me@gmail.com"
        assert saved.app_password == "abcd efgh"  # pragma: allowlist secret
        assert saved.is_enabled

    def test_add_custom_senders(
        self, runner: CliRunner, account_store: MagicMock
    ) -> None:
        result = runner.invoke(
            cli,
            [
                "accounts",
                "add",
                "me@gmail.com",
                "--password",
                "pw",
                "--sender",
                "Alerts@Bank.test",
                "--disabled",
            ],
        )

        assert result.exit_code == 0, result.output
        saved = account_store.save.call_args[0][0]
        assert saved.trusted_senders == ["alerts@bank.test"]
        assert not saved.is_enabled

    def test_add_over_limit(self, runner: CliRunner, account_store: MagicMock) -> None:
        account_store.save.side_effect = ValueError(
            "Maximum 3 email accounts allowed"
        )

        result = runner.invoke(
            cli, ["accounts", "add", "fourth@gmail.com", "--password", "pw"]
        )

        assert result.exit_code == 1
        assert "Maximum 3 email accounts allowed" in result.output

    def test_add_invalid_port(
        self, runner: CliRunner, account_store: MagicMock
    ) -> None:
        result = runner.invoke(
            cli,
            ["accounts", "add", "me@gmail.com", "--password", "pw", "--port", "0"],
        )

        assert result.exit_code == 2
        account_store.save.assert_not_called()

    def test_list_empty(self, runner: CliRunner, account_store: MagicMock) -> None:
        account_store.list_accounts.return_value = []

        result = runner.invoke(cli, ["accounts", "list"])

        assert result.exit_code == 0
        assert "No email accounts configured." in result.output

    def test_list(self, runner: CliRunner, account_store: MagicMock) -> None:
        account_store.list_accounts.return_value = [
            EmailAccount(
                email_address="me@gmail.com",
                app_password="pw",  # pragma: allowlist secret
                is_enabled=False,
            )
        ]

        result = runner.invoke(cli, ["accounts", "list"])

        assert result.exit_code == 0
        assert "me@gmail.com" in result.output
        assert "disabled" in result.output
        assert "last sync: never" in result.output

    def test_remove(self, runner: CliRunner, account_store: MagicMock) -> None:
        account_store.delete.return_value = True

        result = runner.invoke(cli, ["accounts", "remove", "me@gmail.com"])

        assert result.exit_code == 0
        assert "Removed me@gmail.com." in result.output

    def test_remove_missing(self, runner: CliRunner, account_store: MagicMock) -> None:
        account_store.delete.return_value = False

        result = runner.invoke(cli, ["accounts", "remove", "nobody@gmail.com"])

        assert result.exit_code == 1
        assert "No account nobody@gmail.com" in result.output


class TestInitDb:
    """Tests for the init-db command."""

    def test_creates_schema(self, runner: CliRunner) -> None:
        with (
            patch("expense_sync.cli._connect"),
            patch("expense_sync.db.ensure_schema") as mock_schema,
        ):
            result = runner.invoke(cli, ["init-db"])

        assert result.exit_code == 0
        assert "Database ready." in result.output
        mock_schema.assert_called_once()
