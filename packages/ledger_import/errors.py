"""Exception taxonomy for the ledger import engine.

Row-level problems (``RowParseError``) are caught per row by the import
orchestrator and never abort a batch. Schema-level problems abort a whole file
before anything is written. Reference errors abort a single mutation before
any write.
"""

from __future__ import annotations


class LedgerImportError(Exception):
    """Base class for errors raised by ``ledger_import``."""


class RowParseError(ValueError):
    """A single cell could not be parsed (bad date or amount)."""


class SchemaDetectionError(LedgerImportError, ValueError):
    """No usable column mapping could be resolved for a file.

    ``headers`` holds the header row that was examined, empty when the file
    had none.
    """

    def __init__(self, message: str, *, headers: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.headers = headers


class InvalidTransactionError(LedgerImportError, ValueError):
    """A mutation request is not valid for the ledger."""


class ReferenceNotFoundError(LedgerImportError, LookupError):
    """A referenced row does not exist inside the caller's household."""


class AccountNotFoundError(ReferenceNotFoundError):
    pass


class TransactionNotFoundError(ReferenceNotFoundError):
    pass


class CategoryNotFoundError(ReferenceNotFoundError):
    pass


class TagNotFoundError(ReferenceNotFoundError):
    pass


class RuleNotFoundError(ReferenceNotFoundError):
    pass


class InvalidRuleError(LedgerImportError, ValueError):
    """A category rule definition is not usable (bad pattern, missing fields)."""


__all__ = [
    "LedgerImportError",
    "RowParseError",
    "SchemaDetectionError",
    "InvalidTransactionError",
    "ReferenceNotFoundError",
    "AccountNotFoundError",
    "TransactionNotFoundError",
    "CategoryNotFoundError",
    "TagNotFoundError",
    "RuleNotFoundError",
    "InvalidRuleError",
]
