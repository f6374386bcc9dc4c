"""Dedup filter for import candidates.

The dedup key is ``date | magnitude | lowercased trimmed description``. It
ignores time of day, merchant and reference so re-exports with minor
formatting drift still collide with the rows already in the ledger. The same
key also collapses exact repeats inside one file. Two genuinely distinct
same-day purchases with identical amount and description are therefore
treated as one; see DESIGN.md before making the key stricter.

Public surface:
- ``dedup_key`` / ``fingerprint``: the composite key and its SHA-256 form
  (stored as ``Transaction.external_id`` on imported rows).
- ``existing_keys_for_account``: keys of persisted rows for one account over
  a date window.
- ``existing_external_ids``: stored fingerprints among a batch's candidates.
- ``is_persisted``: single-candidate re-check used under the account lock.
- ``partition_duplicates``: split candidates into unique and duplicate.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from db.models.ledger import Transaction
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .models import ParsedTransaction, quantize_amount


def dedup_key(when: date, amount: Decimal, description: str | None) -> str:
    magnitude = quantize_amount(abs(amount))
    return f"{when.isoformat()}|{magnitude:.2f}|{(description or '').strip().lower()}"


def fingerprint(key: str) -> str:
    """Return a stable SHA-256 hex digest of a dedup key."""

    data = json.dumps({"key": key}, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def candidate_key(tx: ParsedTransaction) -> str:
    return dedup_key(tx.date, tx.amount, tx.description)


def existing_keys_for_account(
    session: Session,
    *,
    account_id: str,
    start: date,
    end: date,
) -> set[str]:
    """Dedup keys of every transaction on ``account_id`` dated within ``[start, end]``."""

    stmt = select(Transaction.date, Transaction.amount, Transaction.description).where(
        Transaction.account_id == account_id,
        Transaction.date >= start,
        Transaction.date <= end,
    )
    return {dedup_key(d, a, desc) for d, a, desc in session.execute(stmt)}


def existing_external_ids(
    session: Session,
    *,
    account_id: str,
    fingerprints: Iterable[str],
) -> set[str]:
    """The subset of ``fingerprints`` already stored as ``external_id`` on the account.

    Imported rows keep their fingerprint even after the user edits them, so a
    re-import still recognises a row whose date, amount or description changed.
    """

    wanted = sorted(set(fingerprints))
    if not wanted:
        return set()
    stmt = select(Transaction.external_id).where(
        Transaction.account_id == account_id,
        Transaction.external_id.in_(wanted),
    )
    return set(session.scalars(stmt))


def is_persisted(session: Session, *, account_id: str, candidate: ParsedTransaction) -> bool:
    """Whether ``candidate`` is already on the account, by fingerprint or by key.

    The importer calls this per row with the account locked, after the batch
    level filter, so an import running concurrently on the same account cannot
    slip the same row in twice.
    """

    key = candidate_key(candidate)
    digest = fingerprint(key)
    stmt = select(
        Transaction.date, Transaction.amount, Transaction.description, Transaction.external_id
    ).where(
        Transaction.account_id == account_id,
        or_(Transaction.external_id == digest, Transaction.date == candidate.date),
    )
    return any(
        ext == digest or dedup_key(d, a, desc) == key for d, a, desc, ext in session.execute(stmt)
    )


def partition_duplicates(
    candidates: Sequence[ParsedTransaction],
    existing_keys: Iterable[str],
    existing_fingerprints: Iterable[str] = (),
) -> tuple[list[ParsedTransaction], list[ParsedTransaction]]:
    """Split ``candidates`` into ``(unique, duplicates)`` preserving input order.

    A candidate is a duplicate when its key (or its fingerprint, as stored in
    ``external_id``) is already persisted, or when an earlier candidate in the
    same batch produced the same key.
    """

    seen = set(existing_keys)
    stored = set(existing_fingerprints)
    unique: list[ParsedTransaction] = []
    duplicates: list[ParsedTransaction] = []
    for tx in candidates:
        key = candidate_key(tx)
        if key in seen or fingerprint(key) in stored:
            duplicates.append(tx)
            continue
        seen.add(key)
        unique.append(tx)
    return unique, duplicates


def filter_against_ledger(
    session: Session,
    *,
    account_id: str,
    candidates: Sequence[ParsedTransaction],
) -> tuple[list[ParsedTransaction], list[ParsedTransaction]]:
    """Load the persisted keys for the batch's date range and partition."""

    if not candidates:
        return [], []
    start = min(tx.date for tx in candidates)
    end = max(tx.date for tx in candidates)
    existing = existing_keys_for_account(session, account_id=account_id, start=start, end=end)
    stored = existing_external_ids(
        session,
        account_id=account_id,
        fingerprints=(fingerprint(candidate_key(tx)) for tx in candidates),
    )
    return partition_duplicates(candidates, existing, stored)


__all__ = [
    "dedup_key",
    "fingerprint",
    "candidate_key",
    "existing_keys_for_account",
    "existing_external_ids",
    "is_persisted",
    "partition_duplicates",
    "filter_against_ledger",
]
