"""CLI entry point for expense-sync."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

import click

from expense_sync.cipher import CredentialCipher, DecryptionError
from expense_sync.config import get_encryption_key, get_imap_config, has_imap_config
from expense_sync.models import DEFAULT_TRUSTED_SENDERS, EmailAccount, SyncSummary
from expense_sync.parsers.categories import map_to_category
from expense_sync.parsers.registry import TEMPLATES, parse

if TYPE_CHECKING:
    from typing import TextIO

    import psycopg

logger = logging.getLogger(__name__)


def _connect() -> psycopg.Connection[dict[str, object]]:
    from expense_sync.db import get_connection

    try:
        return get_connection()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def _cipher() -> CredentialCipher:
    try:
        return CredentialCipher.from_passphrase(get_encryption_key())
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Expense sync: turn bank and Grab emails into expenses."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("init-db")
def init_db() -> None:
    """Create the database tables if they do not exist."""
    from expense_sync.db import ensure_schema

    with _connect() as conn:
        ensure_schema(conn)
    click.echo("Database ready.")


@cli.command()
@click.option(
    "--since-days",
    default=7,
    show_default=True,
    type=click.IntRange(min=1),
    help="Only look at mail received in the last N days.",
)
@click.option(
    "--llm-fallback",
    is_flag=True,
    help="Ask the LLM about trusted mail the templates cannot parse.",
)
def sync(since_days: int, llm_fallback: bool) -> None:
    """Import new expenses from every configured mailbox."""
    from dataclasses import replace

    from expense_sync.accounts import EmailAccountStore, to_imap_config
    from expense_sync.adapters.imap import ImapAdapter
    from expense_sync.store import PostgresExpenseStore
    from expense_sync.sync import sync_account

    fallback = None
    if llm_fallback:
        from expense_sync.extraction import create_extraction_agent, extract_with_llm

        try:
            fallback = partial(extract_with_llm, agent=create_extraction_agent())
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

    cipher = _cipher()
    total = SyncSummary()
    with _connect() as conn:
        account_store = EmailAccountStore(conn, cipher)
        store = PostgresExpenseStore(conn)

        try:
            stored = account_store.list_accounts(enabled_only=True)
        except DecryptionError as exc:
            raise click.ClickException(
                f"Cannot decrypt a stored mail password ({exc}). "
                "Check EMAIL_ENCRYPTION_KEY or re-save the account."
            ) from exc

        configs = [to_imap_config(a, since_days=since_days) for a in stored]
        if has_imap_config():
            try:
                configs.append(replace(get_imap_config(), since_days=since_days))
            except ValueError as exc:
                raise click.ClickException(str(exc)) from exc

        if not configs:
            raise click.ClickException(
                "No email accounts configured. Add one with 'accounts add'."
            )

        for config in configs:
            summary = sync_account(ImapAdapter(config), store, fallback=fallback)
            total = total.merge(summary)
            if any(a.email_address == config.username.lower() for a in stored):
                account_store.touch_last_sync(config.username.lower())

    click.echo(
        f"Synced {total.inserted} new expense(s) "
        f"({total.duplicates} duplicate(s), {total.declined} skipped, "
        f"{total.failed} failed) from {len(configs)} account(s)."
    )


@cli.command("parse")
@click.argument(
    "template", type=click.Choice(sorted(TEMPLATES), case_sensitive=False)
)
@click.argument("body", type=click.File("r", encoding="utf-8"), default="-")
@click.option("--subject", default="", help="Email subject line.")
def parse_cmd(template: str, body: TextIO, subject: str) -> None:
    """Parse one email body (file or stdin) and print the transaction as JSON."""
    record = parse(template, subject, body.read())
    if record is None:
        click.echo("No transaction found.", err=True)
        raise SystemExit(1)
    click.echo(record.model_dump_json(indent=2))


@cli.command()
@click.argument("transaction_type")
@click.argument("merchant")
def categorize(transaction_type: str, merchant: str) -> None:
    """Print the spending category for a transaction type and merchant."""
    click.echo(map_to_category(transaction_type, merchant))


@cli.group()
def accounts() -> None:
    """Manage mailboxes used for syncing."""


@accounts.command("add")
@click.argument("email_address")
@click.password_option(
    "--password", prompt="App password", help="Mail app-password (stored encrypted)."
)
@click.option("--host", default="imap.gmail.com", show_default=True)
@click.option("--port", default=993, show_default=True, type=int)
@click.option("--folder", default="INBOX", show_default=True)
@click.option(
    "--sender",
    "senders",
    multiple=True,
    help="Trusted sender address (repeatable). Defaults to VIB and Grab.",
)
@click.option("--disabled", is_flag=True, help="Save without enabling sync.")
def accounts_add(
    email_address: str,
    password: str,
    host: str,
    port: int,
    folder: str,
    senders: tuple[str, ...],
    disabled: bool,
) -> None:
    """Add or update a mailbox."""
    from expense_sync.accounts import EmailAccountStore

    try:
        account = EmailAccount(
            email_address=email_address,
            app_password=password,
            imap_host=host,
            imap_port=port,
            imap_folder=folder,
            is_enabled=not disabled,
            trusted_senders=list(senders or DEFAULT_TRUSTED_SENDERS),
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    with _connect() as conn:
        try:
            EmailAccountStore(conn, _cipher()).save(account)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
    click.echo(f"Saved {account.email_address}.")


@accounts.command("list")
def accounts_list() -> None:
    """List configured mailboxes."""
    from expense_sync.accounts import EmailAccountStore

    with _connect() as conn:
        try:
            stored = EmailAccountStore(conn, _cipher()).list_accounts()
        except DecryptionError as exc:
            raise click.ClickException(str(exc)) from exc

    if not stored:
        click.echo("No email accounts configured.")
        return
    for account in stored:
        status = "enabled" if account.is_enabled else "disabled"
        last_sync = (
            account.last_sync_at.isoformat() if account.last_sync_at else "never"
        )
        click.echo(
            f"{account.email_address}  {account.imap_host}:{account.imap_port}  "
            f"{status}  last sync: {last_sync}  "
            f"senders: {', '.join(account.trusted_senders)}"
        )


@accounts.command("remove")
@click.argument("email_address")
def accounts_remove(email_address: str) -> None:
    """Delete a mailbox and its stored password."""
    from expense_sync.accounts import EmailAccountStore

    with _connect() as conn:
        removed = EmailAccountStore(conn, _cipher()).delete(email_address)
    if not removed:
        raise click.ClickException(f"No account {email_address}")
    click.echo(f"Removed {email_address}.")
