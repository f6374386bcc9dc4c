"""Schema detection: infer a ``ColumnMapping`` from a bank export header row.

Each semantic slot has an ordered list of header synonyms. Labels are compared
case-insensitively, first by exact match over the whole synonym list and then
by substring containment, so ``"Transaction Date"`` beats a later
``"Value Date"`` column but ``"Date Posted"`` is still recognised.

Detection is heuristic by intent: real exports rarely share one schema, so the
detector aims for "usually right" and callers can always pass an explicit
mapping instead.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from .logging_setup import get_logger
from .models import ColumnMapping

logger = get_logger("ledger_import.columns")

DATE_SYNONYMS: tuple[str, ...] = (
    "date",
    "transaction date",
    "trans date",
    "posted date",
    "posting date",
    "value date",
)
AMOUNT_SYNONYMS: tuple[str, ...] = ("amount", "value", "sum", "total")
DEBIT_SYNONYMS: tuple[str, ...] = ("debit", "withdrawal", "dr", "money out", "paid out")
CREDIT_SYNONYMS: tuple[str, ...] = ("credit", "deposit", "cr", "money in", "paid in")
DESCRIPTION_SYNONYMS: tuple[str, ...] = (
    "description",
    "narrative",
    "details",
    "memo",
    "particulars",
    "reference",
)
MERCHANT_SYNONYMS: tuple[str, ...] = ("merchant", "payee", "vendor", "name")
REFERENCE_SYNONYMS: tuple[str, ...] = ("reference", "ref", "check", "cheque", "transaction id")

# Short abbreviations only count as exact matches ("dr" must not hit "address").
_EXACT_ONLY: frozenset[str] = frozenset({"dr", "cr", "ref"})

_NUMERIC_CELL_RE = re.compile(r"^[\s$€£¥₹()+\-.,\d]*\d[\s$€£¥₹()+\-.,\d]*$")


def _find(
    lowered: Sequence[str],
    synonyms: Sequence[str],
    *,
    exclude: Callable[[int, str], bool] | None = None,
) -> int | None:
    def allowed(i: int) -> bool:
        return exclude is None or not exclude(i, lowered[i])

    for syn in synonyms:
        for i, h in enumerate(lowered):
            if h == syn and allowed(i):
                return i
    for syn in synonyms:
        if syn in _EXACT_ONLY:
            continue
        for i, h in enumerate(lowered):
            if syn in h and allowed(i):
                return i
    return None


def _is_debit_or_credit(h: str) -> bool:
    for syn in DEBIT_SYNONYMS + CREDIT_SYNONYMS:
        if h == syn or (syn not in _EXACT_ONLY and syn in h):
            return True
    return False


def _looks_numeric(values: Sequence[str]) -> bool:
    filled = [v for v in values if v]
    return bool(filled) and all(_NUMERIC_CELL_RE.match(v) for v in filled)


def detect_column_mapping(
    headers: Sequence[str],
    *,
    sample_rows: Sequence[Sequence[str]] = (),
) -> ColumnMapping | None:
    """Return the inferred mapping for ``headers`` or ``None``.

    ``None`` is returned when no date column is found, when neither an amount
    column nor a debit/credit pair is found, or when no column is left over for
    the description. ``sample_rows`` (optional data rows) let the description
    fallback skip columns whose values are all numeric.
    """

    lowered = [h.strip().lower() for h in headers]

    date_idx = _find(lowered, DATE_SYNONYMS)
    if date_idx is None:
        logger.debug("no date column among headers %r", list(headers))
        return None

    amount_idx = _find(
        lowered,
        AMOUNT_SYNONYMS,
        exclude=lambda i, h: (
            i == date_idx or "balance" in h or "date" in h or _is_debit_or_credit(h)
        ),
    )

    debit_idx = credit_idx = None
    if amount_idx is None:
        debit_idx = _find(lowered, DEBIT_SYNONYMS, exclude=lambda i, h: i == date_idx)
        credit_idx = _find(
            lowered, CREDIT_SYNONYMS, exclude=lambda i, h: i in (date_idx, debit_idx)
        )
        if debit_idx is None or credit_idx is None:
            logger.debug("no amount column or debit/credit pair among %r", list(headers))
            return None

    balance_idx = _find(lowered, ("balance",))
    numeric_slots = {date_idx, amount_idx, debit_idx, credit_idx, balance_idx} - {None}

    description_idx = _find(
        lowered, DESCRIPTION_SYNONYMS, exclude=lambda i, h: i in numeric_slots
    )
    if description_idx is None:
        for i, h in enumerate(lowered):
            if i in numeric_slots or "amount" in h or "balance" in h:
                continue
            column = [row[i] if i < len(row) else "" for row in sample_rows]
            if _looks_numeric(column):
                continue
            description_idx = i
            break
    if description_idx is None:
        logger.debug("no description column among %r", list(headers))
        return None

    merchant_idx = _find(
        lowered,
        MERCHANT_SYNONYMS,
        exclude=lambda i, h: i in numeric_slots or i == description_idx,
    )
    reference_idx = _find(
        lowered,
        REFERENCE_SYNONYMS,
        exclude=lambda i, h: i in numeric_slots or i == description_idx or "description" in h,
    )

    def label(i: int | None) -> str | None:
        return headers[i] if i is not None else None

    mapping = ColumnMapping(
        date=headers[date_idx],
        description=label(description_idx),
        amount=label(amount_idx),
        debit=label(debit_idx),
        credit=label(credit_idx),
        merchant=label(merchant_idx),
        reference=label(reference_idx),
        balance=label(balance_idx),
    )
    logger.debug("detected %s mapping: %r", mapping.detected_format, mapping)
    return mapping


__all__ = [
    "DATE_SYNONYMS",
    "AMOUNT_SYNONYMS",
    "DEBIT_SYNONYMS",
    "CREDIT_SYNONYMS",
    "DESCRIPTION_SYNONYMS",
    "MERCHANT_SYNONYMS",
    "REFERENCE_SYNONYMS",
    "detect_column_mapping",
]
