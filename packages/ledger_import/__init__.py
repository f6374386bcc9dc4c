"""Public interface for the ``ledger_import`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    account_balance,
    add_rule,
    add_transaction,
    edit_rule,
    edit_transaction,
    fetch_transaction,
    import_csv,
    preview_csv,
    remove_rule,
    remove_transaction,
)
from .errors import (
    AccountNotFoundError,
    CategoryNotFoundError,
    InvalidRuleError,
    InvalidTransactionError,
    LedgerImportError,
    ReferenceNotFoundError,
    RowParseError,
    RuleNotFoundError,
    SchemaDetectionError,
    TagNotFoundError,
    TransactionNotFoundError,
)
from .models import (
    ColumnMapping,
    ImportOptions,
    ImportSummary,
    ParsedTransaction,
    PreviewResult,
    RuleInput,
    RuleRecord,
    RuleUpdate,
    SplitInput,
    TransactionInput,
    TransactionRecord,
    TransactionUpdate,
)

__all__ = [
    # API
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
    # Models / types
    "ColumnMapping",
    "ImportOptions",
    "ImportSummary",
    "ParsedTransaction",
    "PreviewResult",
    "RuleInput",
    "RuleRecord",
    "RuleUpdate",
    "SplitInput",
    "TransactionInput",
    "TransactionRecord",
    "TransactionUpdate",
    # Errors
    "LedgerImportError",
    "RowParseError",
    "SchemaDetectionError",
    "InvalidTransactionError",
    "InvalidRuleError",
    "ReferenceNotFoundError",
    "AccountNotFoundError",
    "TransactionNotFoundError",
    "CategoryNotFoundError",
    "TagNotFoundError",
    "RuleNotFoundError",
]
