"""Data models and type aliases for ``ledger_import``.

Two families live here:

- Pipeline records (frozen dataclasses): ``RawRow``, ``ColumnMapping`` and its
  resolved ``ColumnIndex``, ``ParsedTransaction``. They are owned by a single
  pipeline run and never persisted as-is.
- Validated I/O DTOs (pydantic): options accepted by the import entrypoints,
  the preview/summary shapes returned to callers, and the inputs of direct
  ledger mutations. They serialize to camelCase with ``by_alias=True``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import SchemaDetectionError

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

TransactionType: TypeAlias = Literal["income", "expense", "transfer"]
TransactionStatus: TypeAlias = Literal["pending", "cleared", "reconciled", "void"]
TransferDirection: TypeAlias = Literal["outgoing", "incoming"]
MatchType: TypeAlias = Literal["contains", "starts_with", "ends_with", "exact", "regex"]
MatchField: TypeAlias = Literal["description", "merchant"]

TRANSACTION_TYPES: tuple[str, ...] = ("income", "expense", "transfer")
TRANSACTION_STATUSES: tuple[str, ...] = ("pending", "cleared", "reconciled", "void")
MATCH_TYPES: tuple[str, ...] = ("contains", "starts_with", "ends_with", "exact", "regex")
MATCH_FIELDS: tuple[str, ...] = ("description", "merchant")

CENT = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Round to cents (half-up), the precision stored in the ledger."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawRow:
    """Trimmed string fields of one CSV record and the source line it starts on.

    ``error`` is set when the reader could not split the record; such a row
    has no fields and fails normalization with that message.
    """

    fields: tuple[str, ...]
    row_number: int
    error: str | None = None

    def is_blank(self) -> bool:
        return self.error is None and not any(self.fields)


@dataclass(frozen=True, slots=True)
class ColumnIndex:
    """A ``ColumnMapping`` resolved against a header row to fixed positions.

    Row processing reads cells by position only; header labels are looked up
    once, when the index is built.
    """

    headers: tuple[str, ...]
    date: int
    description: int
    amount: int | None = None
    debit: int | None = None
    credit: int | None = None
    merchant: int | None = None
    reference: int | None = None
    balance: int | None = None

    @staticmethod
    def cell(fields: Sequence[str], pos: int | None) -> str:
        if pos is None or pos >= len(fields):
            return ""
        return fields[pos]


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Header labels for each semantic slot of a bank export.

    ``date`` is always required, as is either ``amount`` or both ``debit`` and
    ``credit``. ``description`` may be omitted by callers supplying an explicit
    mapping; it then falls back to the first column not used by another
    numeric or date slot.
    """

    date: str
    description: str | None = None
    amount: str | None = None
    debit: str | None = None
    credit: str | None = None
    merchant: str | None = None
    reference: str | None = None
    balance: str | None = None

    def __post_init__(self) -> None:
        if not self.date:
            raise SchemaDetectionError("column mapping requires a date column")
        if not self.amount and not (self.debit and self.credit):
            raise SchemaDetectionError(
                "column mapping requires an amount column or both debit and credit columns"
            )

    @property
    def detected_format(self) -> str:
        return "single-amount" if self.amount else "debit-credit"

    def resolve(self, headers: Sequence[str]) -> ColumnIndex:
        """Translate labels into positions within ``headers``.

        Raises ``SchemaDetectionError`` when a labelled slot is not present or
        when no description column can be found.
        """

        positions = {h: i for i, h in reversed(list(enumerate(headers)))}

        def _pos(label: str | None, slot: str) -> int | None:
            if label is None:
                return None
            if label not in positions:
                raise SchemaDetectionError(f"mapped {slot} column {label!r} is not in the header row")
            return positions[label]

        date_pos = _pos(self.date, "date")
        assert date_pos is not None
        amount_pos = _pos(self.amount, "amount")
        debit_pos = _pos(self.debit, "debit")
        credit_pos = _pos(self.credit, "credit")
        balance_pos = _pos(self.balance, "balance")

        description_pos = _pos(self.description, "description")
        if description_pos is None:
            taken = {date_pos, amount_pos, debit_pos, credit_pos, balance_pos}
            description_pos = next((i for i in range(len(headers)) if i not in taken), None)
            if description_pos is None:
                raise SchemaDetectionError("no column is available for the description")

        return ColumnIndex(
            headers=tuple(headers),
            date=date_pos,
            description=description_pos,
            amount=amount_pos,
            debit=debit_pos,
            credit=credit_pos,
            merchant=_pos(self.merchant, "merchant"),
            reference=_pos(self.reference, "reference"),
            balance=balance_pos,
        )


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A typed import candidate produced by the field normalizer.

    ``amount`` is the non-negative magnitude; ``type`` carries the direction.
    ``raw`` keeps the original cells keyed by header for audit/debugging.
    """

    row_number: int
    date: dt.date
    amount: Decimal
    type: TransactionType
    description: str
    merchant: str | None = None
    reference: str | None = None
    balance: Decimal | None = None
    raw: Mapping[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# I/O DTOs
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RowMessage(_CamelModel):
    row: int
    message: str


class ImportOptions(_CamelModel):
    """Caller-supplied knobs for one import or preview run."""

    mapping: ColumnMapping | None = None
    skip_rows: int = Field(default=0, ge=0)
    date_prefer_day_first: bool = True
    file_name: str | None = None
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    preview: bool = False


class PreviewRow(_CamelModel):
    date: dt.date
    amount: Decimal
    type: TransactionType
    description: str
    merchant: str | None = None


class PreviewResult(_CamelModel):
    """``detected_format`` is ``None`` only when no column mapping could be resolved."""

    success: bool
    headers: list[str]
    total_rows: int
    parsed_count: int
    errors: list[RowMessage]
    warnings: list[RowMessage]
    preview: list[PreviewRow]
    detected_format: str | None = None


class ImportSummary(_CamelModel):
    batch_id: str
    total_rows: int
    imported: int
    skipped: int
    errors: int
    parse_errors: list[RowMessage]


# ---------------------------------------------------------------------------
# Direct mutation inputs
# ---------------------------------------------------------------------------


def _magnitude(v: Decimal) -> Decimal:
    return quantize_amount(abs(v))


def _trimmed(v: str | None) -> str | None:
    if v is None:
        return None
    s = v.strip()
    return s or None


class SplitInput(_CamelModel):
    amount: Decimal
    category_id: str | None = None
    description: str | None = None

    @field_validator("amount")
    @classmethod
    def _amount_magnitude(cls, v: Decimal) -> Decimal:
        return _magnitude(v)

    @field_validator("description")
    @classmethod
    def _strip_text(cls, v: str | None) -> str | None:
        return _trimmed(v)


class TransactionInput(_CamelModel):
    """A new ledger entry created by direct user action."""

    type: TransactionType
    amount: Decimal
    date: dt.date
    status: TransactionStatus = "cleared"
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    description: str | None = None
    merchant: str | None = None
    category_id: str | None = None
    notes: str | None = None
    reference: str | None = None
    transfer_account_id: str | None = None
    splits: list[SplitInput] | None = None
    tag_ids: list[str] | None = None

    @field_validator("amount")
    @classmethod
    def _amount_magnitude(cls, v: Decimal) -> Decimal:
        return _magnitude(v)

    @field_validator("description", "merchant", "notes", "reference")
    @classmethod
    def _strip_text(cls, v: str | None) -> str | None:
        return _trimmed(v)


class TransactionUpdate(_CamelModel):
    """A partial edit; only fields explicitly provided are applied.

    ``splits``/``tag_ids`` replace the existing set wholesale when provided
    (an empty list clears them).
    """

    type: TransactionType | None = None
    amount: Decimal | None = None
    date: dt.date | None = None
    status: TransactionStatus | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    description: str | None = None
    merchant: str | None = None
    category_id: str | None = None
    notes: str | None = None
    reference: str | None = None
    splits: list[SplitInput] | None = None
    tag_ids: list[str] | None = None

    @field_validator("amount")
    @classmethod
    def _amount_magnitude(cls, v: Decimal | None) -> Decimal | None:
        return None if v is None else _magnitude(v)

    @field_validator("description", "merchant", "notes", "reference")
    @classmethod
    def _strip_text(cls, v: str | None) -> str | None:
        return _trimmed(v)


# ---------------------------------------------------------------------------
# Rule management inputs
# ---------------------------------------------------------------------------


class RuleInput(_CamelModel):
    """A new category rule. Lower ``priority`` numbers are evaluated first."""

    name: str = Field(min_length=1)
    match_type: MatchType = "contains"
    match_field: MatchField = "description"
    match_value: str = Field(min_length=1)
    case_sensitive: bool = False
    category_id: str
    account_id: str | None = None
    transaction_type: TransactionType | None = None
    priority: int = 100
    is_active: bool = True

    @field_validator("name", "match_value", mode="before")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class RuleUpdate(_CamelModel):
    """A partial rule edit; only fields explicitly provided are applied."""

    name: str | None = Field(default=None, min_length=1)
    match_type: MatchType | None = None
    match_field: MatchField | None = None
    match_value: str | None = Field(default=None, min_length=1)
    case_sensitive: bool | None = None
    category_id: str | None = None
    account_id: str | None = None
    transaction_type: TransactionType | None = None
    priority: int | None = None
    is_active: bool | None = None

    @field_validator("name", "match_value", mode="before")
    @classmethod
    def _strip_required(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Read models returned by the public facade
# ---------------------------------------------------------------------------


class TransactionRecord(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    account_id: str
    type: TransactionType
    status: TransactionStatus
    amount: Decimal
    currency: str
    date: dt.date
    description: str | None = None
    merchant: str | None = None
    category_id: str | None = None
    category_source: str
    transfer_account_id: str | None = None
    linked_transaction_id: str | None = None
    transfer_direction: TransferDirection | None = None
    import_batch_id: str | None = None
    external_id: str | None = None


class RuleRecord(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    match_type: MatchType
    match_field: MatchField
    match_value: str
    case_sensitive: bool
    category_id: str
    account_id: str | None = None
    transaction_type: TransactionType | None = None
    priority: int
    is_active: bool
    match_count: int


__all__ = [
    "TransactionType",
    "TransactionStatus",
    "TransferDirection",
    "MatchType",
    "MatchField",
    "TRANSACTION_TYPES",
    "TRANSACTION_STATUSES",
    "MATCH_TYPES",
    "MATCH_FIELDS",
    "quantize_amount",
    "RawRow",
    "ColumnIndex",
    "ColumnMapping",
    "ParsedTransaction",
    "RowMessage",
    "ImportOptions",
    "PreviewRow",
    "PreviewResult",
    "ImportSummary",
    "SplitInput",
    "TransactionInput",
    "TransactionUpdate",
    "RuleInput",
    "RuleUpdate",
    "TransactionRecord",
    "RuleRecord",
]
