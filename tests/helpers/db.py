"""DB helpers for tests: bootstrap a temporary SQLite DB and seed ledger rows."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from db.models.ledger import Account, Category, CategoryRule, Tag, Transaction
from sqlalchemy import func, select
from sqlalchemy.orm import Session


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def seed_account(
    session: Session,
    *,
    household_id: str,
    name: str = "Everyday",
    currency: str = "USD",
) -> str:
    account = Account(household_id=household_id, name=name, currency=currency)
    session.add(account)
    session.flush()
    return account.id


def seed_category(
    session: Session,
    *,
    household_id: str,
    name: str,
    type: str = "expense",
) -> str:
    category = Category(household_id=household_id, name=name, type=type)
    session.add(category)
    session.flush()
    return category.id


def seed_tag(session: Session, *, household_id: str, name: str) -> str:
    tag = Tag(household_id=household_id, name=name)
    session.add(tag)
    session.flush()
    return tag.id


def seed_rule(
    session: Session,
    *,
    household_id: str,
    category_id: str,
    match_value: str,
    name: str | None = None,
    match_type: str = "contains",
    match_field: str = "description",
    case_sensitive: bool = False,
    priority: int = 100,
    is_active: bool = True,
    account_id: str | None = None,
    transaction_type: str | None = None,
) -> str:
    """Insert a rule row directly (bypassing validation, e.g. for bad regexes)."""

    rule = CategoryRule(
        household_id=household_id,
        name=name or match_value,
        match_type=match_type,
        match_field=match_field,
        match_value=match_value,
        case_sensitive=case_sensitive,
        priority=priority,
        is_active=is_active,
        account_id=account_id,
        transaction_type=transaction_type,
        category_id=category_id,
    )
    session.add(rule)
    session.flush()
    return rule.id


def balance_of(database_url: str, account_id: str) -> Decimal:
    with session_scope(database_url=database_url) as session:
        return session.scalar(select(Account.current_balance).where(Account.id == account_id))


def recomputed_balance(database_url: str, account_id: str) -> Decimal:
    """Sum of signed effects of the account's transactions, computed from rows."""

    from ledger_import.ledger import effect_of

    with session_scope(database_url=database_url) as session:
        rows = session.scalars(select(Transaction).where(Transaction.account_id == account_id))
        return sum((effect_of(tx) for tx in rows), Decimal("0.00"))


def transaction_count(database_url: str, account_id: str | None = None) -> int:
    with session_scope(database_url=database_url) as session:
        stmt = select(func.count()).select_from(Transaction)
        if account_id is not None:
            stmt = stmt.where(Transaction.account_id == account_id)
        return int(session.scalar(stmt) or 0)
