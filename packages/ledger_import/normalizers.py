"""Field normalization: raw CSV cells → typed ``ParsedTransaction`` candidates.

Dates and amounts in bank exports are locale-ambiguous. The parsers here pick
a single interpretation deterministically:

- dates: ISO ``YYYY-MM-DD`` prefix, then a three-part ``/``, ``-`` or ``.``
  split disambiguated by ``prefer_day_first`` (a first part above 12 can only
  be a day), then a short list of spelled-out formats;
- amounts: currency symbols/codes stripped, accounting parentheses and leading
  or trailing minus mean negative, and the last comma after the last period
  within the final three characters marks a European decimal comma.

Both raise ``RowParseError``; ``normalize_rows`` converts those into row
messages so one bad row never aborts a file.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from .errors import RowParseError
from .logging_setup import get_logger
from .models import ColumnIndex, ParsedTransaction, RawRow, RowMessage, quantize_amount

logger = get_logger("ledger_import.normalizers")

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_ISO_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_PARTS_RE = re.compile(r"[/\-.]")
_FALLBACK_DATE_FORMATS: tuple[str, ...] = (
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%d-%b-%Y",
    "%Y%m%d",
)


def _expand_year(y: int, raw: str) -> int:
    if len(raw) <= 2:
        return 1900 + y if y > 50 else 2000 + y
    return y


def _build_date(y: int, m: int, d: int, raw: str) -> date:
    try:
        return date(y, m, d)
    except ValueError as exc:
        raise RowParseError(f'Invalid date: "{raw}"') from exc


def parse_date(raw: str, *, prefer_day_first: bool = True) -> date:
    """Parse a bank-export date cell into a calendar date.

    Any time-of-day suffix (``"2024-01-31 13:45"``, ``"31/01/2024 09:00"``) is
    ignored. Raises ``RowParseError`` when no strategy yields a valid date.
    """

    s = (raw or "").strip()
    if not s:
        raise RowParseError("Invalid date: empty value")

    m = _ISO_PREFIX_RE.match(s)
    if m:
        return _build_date(int(m.group(1)), int(m.group(2)), int(m.group(3)), raw)

    head = s.split()[0]
    parts = _PARTS_RE.split(head)
    if len(parts) == 3 and all(p.isdigit() for p in parts):
        a, b, c = (int(p) for p in parts)
        if len(parts[0]) == 4:
            return _build_date(a, b, c, raw)
        year = _expand_year(c, parts[2])
        day_first = prefer_day_first or a > 12
        # "01/31/2024" under day-first can only be month-first.
        if day_first and b > 12 and a <= 12:
            day_first = False
        if day_first:
            return _build_date(year, b, a, raw)
        return _build_date(year, a, b, raw)

    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        pass
    raise RowParseError(f'Invalid date: "{raw}"')


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_RE = re.compile(r"[$€£¥₹\s]|(?<![A-Za-z])[A-Za-z]{3}(?![A-Za-z])")
_NUMBER_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")


def parse_amount(raw: str) -> Decimal:
    """Parse a currency amount into a signed ``Decimal`` quantized to cents.

    Examples: ``"$1,234.56"`` → 1234.56, ``"1.234,56"`` → 1234.56,
    ``"(50.00)"`` → -50.00, ``"12.50-"`` → -12.50.
    """

    s = _CURRENCY_RE.sub("", (raw or "").strip())
    if not s:
        raise RowParseError(f'Invalid amount: "{raw}"')

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]
    if s.startswith("-"):
        negative = True
        s = s[1:]
    elif s.startswith("+"):
        s = s[1:]
    elif s.endswith("-"):
        negative = True
        s = s[:-1]

    last_comma = s.rfind(",")
    last_period = s.rfind(".")
    if last_comma > last_period and last_comma > len(s) - 4:
        s = s.replace(".", "").replace(",", ".")
    else:
        s = s.replace(",", "")

    if not _NUMBER_RE.match(s):
        raise RowParseError(f'Invalid amount: "{raw}"')
    try:
        value = Decimal(s)
    except InvalidOperation as exc:
        raise RowParseError(f'Invalid amount: "{raw}"') from exc
    return quantize_amount(-value if negative else value)


def _optional_amount(raw: str) -> Decimal:
    return parse_amount(raw) if raw.strip() else Decimal("0.00")


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


def normalize_row(
    row: RawRow,
    index: ColumnIndex,
    *,
    prefer_day_first: bool = True,
) -> tuple[ParsedTransaction, list[str]]:
    """Normalize one data row; return the candidate and its warning messages.

    Raises ``RowParseError`` for a bad date or amount, or for a record the
    tokenizer could not split.
    """

    if row.error is not None:
        raise RowParseError(row.error)

    cell = ColumnIndex.cell
    fields = row.fields
    warnings: list[str] = []

    when = parse_date(cell(fields, index.date), prefer_day_first=prefer_day_first)

    if index.amount is not None:
        signed = parse_amount(cell(fields, index.amount))
    else:
        debit = _optional_amount(cell(fields, index.debit))
        credit = _optional_amount(cell(fields, index.credit))
        signed = abs(credit) - abs(debit)

    balance: Decimal | None = None
    if index.balance is not None:
        balance_raw = cell(fields, index.balance)
        if balance_raw:
            try:
                balance = parse_amount(balance_raw)
            except RowParseError:
                warnings.append(f'Unparseable balance "{balance_raw}" ignored')

    description = cell(fields, index.description)
    if not description:
        warnings.append("Empty description")
    if len(fields) != len(index.headers):
        warnings.append(
            f"Row has {len(fields)} fields but the header has {len(index.headers)}"
        )

    raw = {h: cell(fields, i) for i, h in enumerate(index.headers)}
    parsed = ParsedTransaction(
        row_number=row.row_number,
        date=when,
        amount=quantize_amount(abs(signed)),
        type="income" if signed >= 0 else "expense",
        description=description,
        merchant=cell(fields, index.merchant) or None,
        reference=cell(fields, index.reference) or None,
        balance=balance,
        raw=raw,
    )
    return parsed, warnings


def normalize_rows(
    rows: Iterable[RawRow],
    index: ColumnIndex,
    *,
    prefer_day_first: bool = True,
) -> tuple[list[ParsedTransaction], list[RowMessage], list[RowMessage]]:
    """Normalize data rows, collecting ``(candidates, errors, warnings)``."""

    parsed: list[ParsedTransaction] = []
    errors: list[RowMessage] = []
    warnings: list[RowMessage] = []
    for row in rows:
        try:
            tx, row_warnings = normalize_row(row, index, prefer_day_first=prefer_day_first)
        except RowParseError as exc:
            errors.append(RowMessage(row=row.row_number, message=str(exc)))
            continue
        parsed.append(tx)
        warnings.extend(RowMessage(row=row.row_number, message=w) for w in row_warnings)
    if errors:
        logger.debug("normalized %d rows with %d errors", len(parsed), len(errors))
    return parsed, errors, warnings


__all__ = ["parse_date", "parse_amount", "normalize_row", "normalize_rows"]
