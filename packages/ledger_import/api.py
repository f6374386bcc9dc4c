"""Public API for the ``ledger_import`` package.

Each function opens its own ``db.client.session_scope`` (``database_url``
falls back to the ``DATABASE_URL`` environment variable) and returns plain
pydantic records, so callers never hold ORM objects past the session. The
session-level building blocks live in ``importer``, ``ledger`` and ``rules``
for callers that manage their own transactions.
"""

from __future__ import annotations

from decimal import Decimal

from db.client import session_scope
from db.models.ledger import Account
from sqlalchemy import select

from .errors import AccountNotFoundError
from .importer import preview_import, run_import
from .ledger import create_transaction, delete_transaction, get_transaction, update_transaction
from .models import (
    ImportOptions,
    ImportSummary,
    PreviewResult,
    RuleInput,
    RuleRecord,
    RuleUpdate,
    TransactionInput,
    TransactionRecord,
    TransactionUpdate,
)
from .rules import create_rule, delete_rule, update_rule


def preview_csv(csv_text: str, options: ImportOptions | None = None) -> PreviewResult:
    """Parse ``csv_text`` and return a bounded sample; nothing is written."""

    return preview_import(csv_text, options)


def import_csv(
    csv_text: str,
    *,
    household_id: str,
    account_id: str,
    options: ImportOptions | None = None,
    database_url: str | None = None,
) -> ImportSummary | PreviewResult:
    """Run a full import of ``csv_text`` into ``account_id``.

    ``options.preview`` turns this into a preview of the same file against
    the same account; nothing is written.
    """

    with session_scope(database_url=database_url) as session:
        return run_import(
            session,
            household_id=household_id,
            account_id=account_id,
            csv_text=csv_text,
            options=options,
        )


def add_transaction(
    data: TransactionInput,
    *,
    household_id: str,
    account_id: str,
    database_url: str | None = None,
) -> TransactionRecord:
    with session_scope(database_url=database_url) as session:
        tx = create_transaction(session, household_id=household_id, account_id=account_id, data=data)
        return TransactionRecord.model_validate(tx)


def edit_transaction(
    transaction_id: str,
    changes: TransactionUpdate,
    *,
    household_id: str,
    database_url: str | None = None,
) -> TransactionRecord:
    with session_scope(database_url=database_url) as session:
        tx = update_transaction(
            session, household_id=household_id, transaction_id=transaction_id, changes=changes
        )
        return TransactionRecord.model_validate(tx)


def remove_transaction(
    transaction_id: str,
    *,
    household_id: str,
    database_url: str | None = None,
) -> list[str]:
    """Delete a transaction (and its transfer counterpart); return deleted ids."""

    with session_scope(database_url=database_url) as session:
        return delete_transaction(session, household_id=household_id, transaction_id=transaction_id)


def fetch_transaction(
    transaction_id: str,
    *,
    household_id: str,
    database_url: str | None = None,
) -> TransactionRecord:
    with session_scope(database_url=database_url) as session:
        tx = get_transaction(session, household_id=household_id, transaction_id=transaction_id)
        return TransactionRecord.model_validate(tx)


def account_balance(
    account_id: str,
    *,
    household_id: str,
    database_url: str | None = None,
) -> Decimal:
    with session_scope(database_url=database_url) as session:
        balance = session.scalar(
            select(Account.current_balance).where(
                Account.id == account_id, Account.household_id == household_id
            )
        )
        if balance is None:
            raise AccountNotFoundError(f"account {account_id} not found")
        return balance


def add_rule(
    rule: RuleInput,
    *,
    household_id: str,
    database_url: str | None = None,
) -> RuleRecord:
    with session_scope(database_url=database_url) as session:
        row = create_rule(session, household_id=household_id, rule=rule)
        return RuleRecord.model_validate(row)


def edit_rule(
    rule_id: str,
    changes: RuleUpdate,
    *,
    household_id: str,
    database_url: str | None = None,
) -> RuleRecord:
    with session_scope(database_url=database_url) as session:
        row = update_rule(session, household_id=household_id, rule_id=rule_id, changes=changes)
        return RuleRecord.model_validate(row)


def remove_rule(rule_id: str, *, household_id: str, database_url: str | None = None) -> None:
    with session_scope(database_url=database_url) as session:
        delete_rule(session, household_id=household_id, rule_id=rule_id)


__all__ = [
    "preview_csv",
    "import_csv",
    "add_transaction",
    "edit_transaction",
    "remove_transaction",
    "fetch_transaction",
    "account_balance",
    "add_rule",
    "edit_rule",
    "remove_rule",
]
