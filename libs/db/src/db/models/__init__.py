"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models used by ``ledger_import``.
"""

from .ledger import (
    Account,
    Base,
    Category,
    CategoryRule,
    ImportBatch,
    Tag,
    Transaction,
    TransactionSplit,
    TransactionTag,
)

__all__ = [
    "Base",
    "Account",
    "Category",
    "CategoryRule",
    "ImportBatch",
    "Tag",
    "Transaction",
    "TransactionSplit",
    "TransactionTag",
]
