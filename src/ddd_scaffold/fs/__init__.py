"""Filesystem operations with rollback and backup support.

This module provides the building blocks the executor writes through:
transaction-aware write/delete helpers, reverse-order rollback, transaction
journals, and timestamped backups.
"""

from ddd_scaffold.fs.backups import BackupEntry, BackupStore
from ddd_scaffold.fs.fs_ops import WriteOutcome, delete_file, write_file
from ddd_scaffold.fs.journal import TransactionJournal, list_journals, read_journal
from ddd_scaffold.fs.paths import normalize_relative_path
from ddd_scaffold.fs.transaction import (
    RollbackResult,
    Transaction,
    TransactionManager,
)

__all__ = [
    "BackupEntry",
    "BackupStore",
    "RollbackResult",
    "Transaction",
    "TransactionJournal",
    "TransactionManager",
    "WriteOutcome",
    "delete_file",
    "list_journals",
    "normalize_relative_path",
    "read_journal",
    "write_file",
]
