"""Ledger mutator: create, update and delete transactions with balance upkeep.

``Account.current_balance`` is the sum of the signed effects of the account's
transactions and is only ever moved by increments computed here:

- create applies ``effect(tx)``;
- delete applies ``-effect(tx)``;
- update applies ``effect(new) - effect(old)``.

``effect`` is zero for void transactions, ``+amount`` for income and incoming
transfer legs, ``-amount`` for expenses and outgoing transfer legs.

Transfers between two accounts are stored as a pair of ``transfer`` rows that
reference each other through ``linked_transaction_id``. Every touched account
row is locked (``SELECT ... FOR UPDATE``, ordered by id) before any delta is
written, and all writes for one mutation share the caller's session
transaction, so a pair is created, edited and deleted as one unit.

Functions here flush but never commit; wrap calls in ``session_scope``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any

from db.models.ledger import (
    Account,
    Category,
    Tag,
    Transaction,
    TransactionSplit,
    TransactionTag,
)
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from .errors import (
    AccountNotFoundError,
    CategoryNotFoundError,
    InvalidTransactionError,
    TagNotFoundError,
    TransactionNotFoundError,
)
from .logging_setup import get_logger
from .models import SplitInput, TransactionInput, TransactionUpdate, quantize_amount

logger = get_logger("ledger_import.ledger")

ZERO = Decimal("0.00")

# Fields copied onto the counterpart leg when one leg of a transfer is edited.
_MIRRORED_FIELDS: tuple[str, ...] = ("amount", "date", "status", "currency", "description")


def balance_effect(
    *,
    type: str,
    status: str,
    amount: Decimal,
    transfer_direction: str | None = None,
) -> Decimal:
    """Signed contribution of one transaction to its account balance."""

    if status == "void":
        return ZERO
    magnitude = quantize_amount(abs(amount))
    if type == "income":
        return magnitude
    if type == "expense":
        return -magnitude
    if type == "transfer":
        return magnitude if transfer_direction == "incoming" else -magnitude
    raise InvalidTransactionError(f"unknown transaction type {type!r}")


def effect_of(tx: Transaction) -> Decimal:
    return balance_effect(
        type=tx.type,
        status=tx.status,
        amount=tx.amount,
        transfer_direction=tx.transfer_direction,
    )


# ---------------------------------------------------------------------------
# Lookups and locking
# ---------------------------------------------------------------------------


def lock_accounts(
    session: Session,
    *,
    household_id: str,
    account_ids: Iterable[str],
) -> dict[str, Account]:
    """Lock the given household accounts in id order and return them by id.

    Raises ``AccountNotFoundError`` when any id is unknown or belongs to
    another household.
    """

    ids = sorted(set(account_ids))
    rows = session.scalars(
        select(Account)
        .where(Account.id.in_(ids), Account.household_id == household_id)
        .order_by(Account.id)
        .with_for_update()
    ).all()
    found = {a.id: a for a in rows}
    missing = [i for i in ids if i not in found]
    if missing:
        raise AccountNotFoundError(f"account {missing[0]} not found")
    return found


def apply_balance_deltas(session: Session, deltas: Mapping[str, Decimal]) -> None:
    """Increment each account's balance by its delta (zero deltas are skipped)."""

    for account_id in sorted(deltas):
        delta = quantize_amount(deltas[account_id])
        if delta == ZERO:
            continue
        session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(current_balance=Account.current_balance + delta, updated_at=func.now())
        )
        logger.debug("account %s balance %+.2f", account_id, delta)


def get_transaction(session: Session, *, household_id: str, transaction_id: str) -> Transaction:
    tx = session.scalar(
        select(Transaction).where(
            Transaction.id == transaction_id, Transaction.household_id == household_id
        )
    )
    if tx is None:
        raise TransactionNotFoundError(f"transaction {transaction_id} not found")
    return tx


def _check_categories(session: Session, *, household_id: str, category_ids: Iterable[str | None]) -> None:
    wanted = {c for c in category_ids if c is not None}
    if not wanted:
        return
    found = set(
        session.scalars(
            select(Category.id).where(Category.id.in_(wanted), Category.household_id == household_id)
        )
    )
    missing = sorted(wanted - found)
    if missing:
        raise CategoryNotFoundError(f"category {missing[0]} not found")


def _check_tags(session: Session, *, household_id: str, tag_ids: Iterable[str]) -> None:
    wanted = set(tag_ids)
    if not wanted:
        return
    found = set(
        session.scalars(select(Tag.id).where(Tag.id.in_(wanted), Tag.household_id == household_id))
    )
    missing = sorted(wanted - found)
    if missing:
        raise TagNotFoundError(f"tag {missing[0]} not found")


def _split_category_ids(splits: Sequence[SplitInput] | None) -> list[str | None]:
    return [s.category_id for s in splits or ()]


def _replace_splits(session: Session, transaction_id: str, splits: Sequence[SplitInput]) -> None:
    session.execute(delete(TransactionSplit).where(TransactionSplit.transaction_id == transaction_id))
    for i, split in enumerate(splits):
        session.add(
            TransactionSplit(
                transaction_id=transaction_id,
                amount=split.amount,
                category_id=split.category_id,
                description=split.description,
                sort_order=i,
            )
        )


def _replace_tags(session: Session, transaction_id: str, tag_ids: Sequence[str]) -> None:
    session.execute(delete(TransactionTag).where(TransactionTag.transaction_id == transaction_id))
    for tag_id in dict.fromkeys(tag_ids):
        session.add(TransactionTag(transaction_id=transaction_id, tag_id=tag_id))


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def create_transaction(
    session: Session,
    *,
    household_id: str,
    account_id: str,
    data: TransactionInput,
    category_source: str | None = None,
    import_batch_id: str | None = None,
    external_id: str | None = None,
) -> Transaction:
    """Insert a transaction (and its transfer counterpart) and move balances.

    Every reference is validated before the first write: the account, the
    transfer destination, the category, split categories and tags must all
    belong to ``household_id``.
    """

    destination_id = data.transfer_account_id if data.type == "transfer" else None
    if destination_id is not None and destination_id == account_id:
        raise InvalidTransactionError("a transfer needs two different accounts")

    accounts = lock_accounts(
        session,
        household_id=household_id,
        account_ids=[account_id] + ([destination_id] if destination_id else []),
    )
    _check_categories(
        session,
        household_id=household_id,
        category_ids=[data.category_id, *_split_category_ids(data.splits)],
    )
    _check_tags(session, household_id=household_id, tag_ids=data.tag_ids or ())

    source = accounts[account_id]
    currency = data.currency or source.currency
    tx = Transaction(
        household_id=household_id,
        account_id=account_id,
        transfer_account_id=destination_id,
        transfer_direction="outgoing" if data.type == "transfer" else None,
        type=data.type,
        status=data.status,
        amount=data.amount,
        currency=currency,
        date=data.date,
        description=data.description,
        merchant=data.merchant,
        category_id=data.category_id,
        category_source=category_source or ("manual" if data.category_id else "unknown"),
        notes=data.notes,
        reference=data.reference,
        import_batch_id=import_batch_id,
        external_id=external_id,
    )
    session.add(tx)
    session.flush()

    if data.splits:
        _replace_splits(session, tx.id, data.splits)
    if data.tag_ids:
        _replace_tags(session, tx.id, data.tag_ids)

    deltas: dict[str, Decimal] = {account_id: effect_of(tx)}

    if destination_id is not None:
        counterpart = Transaction(
            household_id=household_id,
            account_id=destination_id,
            transfer_account_id=account_id,
            linked_transaction_id=tx.id,
            transfer_direction="incoming",
            type="transfer",
            status=tx.status,
            amount=tx.amount,
            currency=currency,
            date=tx.date,
            description=tx.description,
            merchant=tx.merchant,
            notes=tx.notes,
            reference=tx.reference,
        )
        session.add(counterpart)
        session.flush()
        tx.linked_transaction_id = counterpart.id
        deltas[destination_id] = effect_of(counterpart)

    apply_balance_deltas(session, deltas)
    session.flush()
    logger.debug(
        "created %s transaction %s on account %s amount=%s",
        tx.type,
        tx.id,
        account_id,
        tx.amount,
    )
    return tx


def update_transaction(
    session: Session,
    *,
    household_id: str,
    transaction_id: str,
    changes: TransactionUpdate,
) -> Transaction:
    """Apply the explicitly provided fields of ``changes`` and rebalance.

    Editing one leg of a transfer mirrors amount, date, status and description
    onto the linked leg. Switching a row into or out of ``transfer`` is not
    supported; delete and recreate instead.
    """

    provided = changes.model_fields_set
    values: dict[str, Any] = {k: getattr(changes, k) for k in provided}

    for required in ("type", "amount", "date", "status", "currency"):
        if required in values and values[required] is None:
            raise InvalidTransactionError(f"{required} cannot be cleared")

    tx = get_transaction(session, household_id=household_id, transaction_id=transaction_id)
    if "type" in values and (values["type"] == "transfer") != (tx.type == "transfer"):
        raise InvalidTransactionError(
            "changing a transaction to or from a transfer is not supported"
        )

    linked: Transaction | None = None
    if tx.linked_transaction_id is not None:
        linked = session.scalar(
            select(Transaction).where(
                Transaction.id == tx.linked_transaction_id,
                Transaction.household_id == household_id,
            )
        )

    lock_accounts(
        session,
        household_id=household_id,
        account_ids=[tx.account_id] + ([linked.account_id] if linked is not None else []),
    )
    _check_categories(
        session,
        household_id=household_id,
        category_ids=[values.get("category_id"), *_split_category_ids(values.get("splits"))],
    )
    if values.get("tag_ids"):
        _check_tags(session, household_id=household_id, tag_ids=values["tag_ids"])

    deltas: dict[str, Decimal] = {}
    old_effect = effect_of(tx)
    for key in ("type", "amount", "date", "status", "currency", "description", "merchant", "notes", "reference"):
        if key in values:
            setattr(tx, key, values[key])
    if "category_id" in values:
        tx.category_id = values["category_id"]
        tx.category_source = "manual" if values["category_id"] else "unknown"
    tx.updated_at = func.now()
    deltas[tx.account_id] = effect_of(tx) - old_effect

    if linked is not None:
        linked_old = effect_of(linked)
        for key in _MIRRORED_FIELDS:
            if key in values:
                setattr(linked, key, values[key])
        linked.updated_at = func.now()
        deltas[linked.account_id] = deltas.get(linked.account_id, ZERO) + effect_of(linked) - linked_old

    if values.get("splits") is not None:
        _replace_splits(session, tx.id, values["splits"])
    if values.get("tag_ids") is not None:
        _replace_tags(session, tx.id, values["tag_ids"])

    apply_balance_deltas(session, deltas)
    session.flush()
    logger.debug("updated transaction %s fields=%s", tx.id, sorted(values))
    return tx


def delete_transaction(session: Session, *, household_id: str, transaction_id: str) -> list[str]:
    """Delete a transaction and its linked transfer leg, reversing both effects.

    Returns the ids of the deleted rows.
    """

    tx = get_transaction(session, household_id=household_id, transaction_id=transaction_id)
    legs = [tx]
    if tx.linked_transaction_id is not None:
        linked = session.scalar(
            select(Transaction).where(
                Transaction.id == tx.linked_transaction_id,
                Transaction.household_id == household_id,
            )
        )
        if linked is not None:
            legs.append(linked)

    lock_accounts(session, household_id=household_id, account_ids=[leg.account_id for leg in legs])

    deltas: dict[str, Decimal] = {}
    for leg in legs:
        deltas[leg.account_id] = deltas.get(leg.account_id, ZERO) - effect_of(leg)

    ids = [leg.id for leg in legs]
    session.execute(delete(TransactionSplit).where(TransactionSplit.transaction_id.in_(ids)))
    session.execute(delete(TransactionTag).where(TransactionTag.transaction_id.in_(ids)))
    for leg in legs:
        session.delete(leg)
    session.flush()

    apply_balance_deltas(session, deltas)
    logger.debug("deleted transactions %s", ids)
    return ids


__all__ = [
    "balance_effect",
    "effect_of",
    "lock_accounts",
    "apply_balance_deltas",
    "get_transaction",
    "create_transaction",
    "update_transaction",
    "delete_transaction",
]
