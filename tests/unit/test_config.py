"""Tests for expense_sync.config."""

from __future__ import annotations

import logging

import pytest

from expense_sync.config import (
    DEV_ENCRYPTION_KEY,
    ImapConfig,
    get_anthropic_api_key,
    get_database_url,
    get_encryption_key,
    get_imap_config,
    get_llm_model,
    get_trusted_senders,
    has_imap_config,
    is_production,
)
from expense_sync.models import DEFAULT_TRUSTED_SENDERS


@pytest.fixture
def imap_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IMAP_HOST", "imap.gmail.com")
    monkeypatch.setenv("IMAP_USERNAME", "user@example.com")
    monkeypatch.setenv("IMAP_PASSWORD", "pass123")  # pragma: allowlist secret
    for name in ("IMAP_PORT", "IMAP_FOLDER", "IMAP_SINCE_DAYS", "TRUSTED_SENDERS"):
        monkeypatch.delenv(name, raising=False)


class TestGetImapConfig:
    """Tests for get_imap_config()."""

    @pytest.mark.usefixtures("imap_env")
    def test_valid_config(self) -> None:
        config = get_imap_config()

        assert config.host == "imap.gmail.com"
        assert config.username == "user@example.com"
        assert config.password == "pass123"  # pragma: allowlist secret
        assert config.port == 993
        assert config.folder == "INBOX"
        assert config.since_days == 7
        assert config.trusted_senders == DEFAULT_TRUSTED_SENDERS

    @pytest.mark.usefixtures("imap_env")
    def test_optional_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMAP_PORT", "143")
        monkeypatch.setenv("IMAP_FOLDER", "Banking")
        monkeypatch.setenv("IMAP_SINCE_DAYS", "30")
        monkeypatch.setenv("TRUSTED_SENDERS", "alerts@bank.test")

        config = get_imap_config()

        assert config.port == 143
        assert config.folder == "Banking"
        assert config.since_days == 30
        assert config.trusted_senders == ("alerts@bank.test",)

    def test_missing_host_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("IMAP_HOST", raising=False)
        monkeypatch.setenv("IMAP_USERNAME", "user@example.com")
        monkeypatch.setenv("IMAP_PASSWORD", "pass123")  # pragma: allowlist secret

        with pytest.raises(ValueError, match="IMAP_HOST"):
            get_imap_config()

    def test_missing_all_required_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("IMAP_HOST", raising=False)
        monkeypatch.delenv("IMAP_USERNAME", raising=False)
        monkeypatch.delenv("IMAP_PASSWORD", raising=False)

        with pytest.raises(
            ValueError, match=r"IMAP_HOST.*IMAP_USERNAME.*IMAP_PASSWORD"
        ):
            get_imap_config()

    def test_config_is_frozen(self) -> None:
        config = ImapConfig(
            host="imap.gmail.com",
            username="user@example.com",
            password="pass",  # pragma: allowlist secret
        )
        with pytest.raises(AttributeError):
            config.host = "other.example.com"  # type: ignore[misc]


class TestHasImapConfig:
    """Tests for has_imap_config()."""

    @pytest.mark.usefixtures("imap_env")
    def test_present(self) -> None:
        assert has_imap_config()

    def test_absent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("IMAP_USERNAME", raising=False)
        monkeypatch.setenv("IMAP_PASSWORD", "pass123")  # pragma: allowlist secret
        assert not has_imap_config()


class TestGetTrustedSenders:
    """Tests for get_trusted_senders()."""

    def test_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TRUSTED_SENDERS", raising=False)
        assert get_trusted_senders() == DEFAULT_TRUSTED_SENDERS

    def test_comma_separated_and_normalized(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TRUSTED_SENDERS", " Alerts@Bank.test, ,no-reply@grab.com ")
        assert get_trusted_senders() == ("alerts@bank.test", "no-reply@grab.com")

    def test_blank_falls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRUSTED_SENDERS", " , ")
        assert get_trusted_senders() == DEFAULT_TRUSTED_SENDERS


class TestGetEncryptionKey:
    """Tests for get_encryption_key() and is_production()."""

    def test_key_present(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EMAIL_ENCRYPTION_KEY", "a-real-passphrase")
        monkeypatch.setenv("APP_ENV", "production")
        assert get_encryption_key() == "a-real-passphrase"

    def test_dev_fallback_warns(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.delenv("EMAIL_ENCRYPTION_KEY", raising=False)
        monkeypatch.delenv("APP_ENV", raising=False)

        with caplog.at_level(logging.WARNING, logger="expense_sync.config"):
            assert get_encryption_key() == DEV_ENCRYPTION_KEY
        assert "development fallback" in caplog.text

    @pytest.mark.parametrize("app_env", ["production", "PROD", " Production "])
    def test_missing_in_production_raises(
        self, monkeypatch: pytest.MonkeyPatch, app_env: str
    ) -> None:
        monkeypatch.delenv("EMAIL_ENCRYPTION_KEY", raising=False)
        monkeypatch.setenv("APP_ENV", app_env)

        assert is_production()
        with pytest.raises(ValueError, match="EMAIL_ENCRYPTION_KEY"):
            get_encryption_key()

    def test_staging_is_not_production(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "staging")
        assert not is_production()


class TestGetDatabaseUrl:
    """Tests for get_database_url()."""

    def test_present(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/expenses")
        assert get_database_url() == "postgresql://localhost/expenses"

    def test_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValueError, match="DATABASE_URL"):
            get_database_url()


class TestGetAnthropicApiKey:
    """Tests for get_anthropic_api_key()."""

    def test_key_present(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test-key")
        assert get_anthropic_api_key() == "sk-ant-test-key"

    def test_key_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            get_anthropic_api_key()


class TestGetLlmModel:
    """Tests for get_llm_model()."""

    def test_default_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LLM_MODEL", raising=False)
        assert get_llm_model() == "claude-haiku-4-5-20251001"

    def test_custom_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_MODEL", "claude-sonnet-4-20250514")
        assert get_llm_model() == "claude-sonnet-4-20250514"
