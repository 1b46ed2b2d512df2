"""File transactions with best-effort reverse-order rollback.

A TransactionManager records enough about every file mutation (creation,
modification, deletion) to undo it. Writes happen immediately; committing only
finalizes bookkeeping, rolling back replays the recorded operations in
reverse. Managers are plain objects passed explicitly to whoever writes
files: there is no process-wide instance.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

import structlog

from ddd_scaffold.core.errors import TransactionStateError
from ddd_scaffold.core.hashing import content_hash
from ddd_scaffold.fs.journal import TransactionJournal
from ddd_scaffold.fs.paths import ensure_parent_dir

FileOperationType = Literal["create", "modify", "delete"]
TransactionStatus = Literal["pending", "committed", "rolled_back", "failed"]


@dataclass
class FileOperation:
    """A single recorded mutation, with what is needed to reverse it."""

    type: FileOperationType
    path: Path
    original_content: bytes | None = field(default=None, repr=False)
    new_content: bytes | None = field(default=None, repr=False)
    timestamp: float = field(default_factory=time.time)
    created_dirs: list[Path] = field(default_factory=list)


@dataclass
class Transaction:
    """In-memory record of the mutations made under one name."""

    id: str
    name: str
    started_at: datetime
    operations: list[FileOperation] = field(default_factory=list)
    status: TransactionStatus = "pending"


@dataclass
class RollbackResult:
    """Outcome of a rollback.

    Attributes:
        transaction_id: Transaction that was rolled back
        restored_count: Operations reverted successfully
        failed_paths: Paths that could not be reverted and need manual repair
        errors: One message per failed path
    """

    transaction_id: str
    restored_count: int = 0
    failed_paths: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_paths


def _new_transaction_id() -> str:
    return f"txn_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class TransactionManager:
    """Tracks one pending transaction at a time.

    State machine: none -> pending (begin) -> committed | rolled_back, after
    which a new transaction may begin.
    """

    def __init__(
        self,
        root: Path | None = None,
        *,
        journal: bool = False,
        logger: Any = None,
    ) -> None:
        """Initialize transaction manager.

        Args:
            root: Project root. Relative paths are resolved against it and
                directory pruning never climbs above it.
            journal: Mirror transactions to ``<state-dir>/transactions``
            logger: Optional structlog logger instance
        """
        if journal and root is None:
            raise ValueError("A project root is required to journal transactions")

        self._root = root.resolve() if root is not None else None
        self._journal_enabled = journal
        self._journal: TransactionJournal | None = None
        self._current: Transaction | None = None
        self._history: list[Transaction] = []
        self._logger = logger or structlog.get_logger()

    @property
    def current(self) -> Transaction | None:
        return self._current

    @property
    def history(self) -> list[Transaction]:
        """Finished transactions, oldest first."""
        return list(self._history)

    @property
    def journal_path(self) -> Path | None:
        return self._journal.path if self._journal is not None else None

    def begin(self, name: str) -> str:
        """Open a new pending transaction.

        Raises:
            TransactionStateError: If a transaction is already pending
            OSError: If journaling is enabled and the journal cannot be opened
        """
        if self._current is not None:
            raise TransactionStateError("begin", "pending", self._current.id)

        transaction = Transaction(
            id=_new_transaction_id(),
            name=name,
            started_at=datetime.now(UTC),
        )

        if self._journal_enabled and self._root is not None:
            self._journal = TransactionJournal(self._root, transaction.id, name)
            self._journal.write_header(transaction.started_at)

        self._current = transaction
        self._logger.info(
            "transaction.begin", transaction_id=transaction.id, name=name
        )
        return transaction.id

    def record_create(
        self,
        path: Path,
        new_content: bytes | None = None,
        created_dirs: list[Path] | None = None,
    ) -> None:
        """Record that ``path`` is being created by this transaction.

        ``created_dirs`` lists the parent directories the write is about to
        make. Rolling back removes exactly those, deepest first, and leaves
        every directory that already existed alone.
        """
        self._record(
            FileOperation(
                "create",
                self._absolute(path),
                None,
                new_content,
                created_dirs=[self._absolute(d) for d in created_dirs or []],
            )
        )

    def record_modify(
        self,
        path: Path,
        original_content: bytes,
        new_content: bytes | None = None,
    ) -> None:
        """Record that ``path`` is being overwritten.

        Only the first original recorded for a path is kept, so repeated
        writes within one transaction still roll back to the true original.
        """
        transaction = self._require_pending("record")
        target = self._absolute(path)

        for op in transaction.operations:
            if op.type == "modify" and op.path == target:
                return

        self._record(FileOperation("modify", target, original_content, new_content))

    def record_delete(self, path: Path, original_content: bytes) -> None:
        """Record that ``path`` is being deleted."""
        self._record(FileOperation("delete", self._absolute(path), original_content))

    def commit(self) -> Transaction:
        """Finalize the pending transaction. Performs no disk changes.

        Raises:
            TransactionStateError: If no transaction is pending
        """
        transaction = self._require_pending("commit")
        transaction.status = "committed"
        self._history.append(transaction)
        self._current = None

        self._close_journal("committed", operations=len(transaction.operations))
        self._logger.info(
            "transaction.commit",
            transaction_id=transaction.id,
            name=transaction.name,
            operations=len(transaction.operations),
        )
        return transaction

    def rollback(self, reason: str | None = None) -> RollbackResult:
        """Undo every recorded operation, newest first.

        Each operation is reverted independently: a failure is logged and
        reported in the result but does not stop the remaining reverts. The
        transaction is marked rolled_back even when some reverts fail.

        Raises:
            TransactionStateError: If no transaction is pending
        """
        transaction = self._require_pending("rollback")
        bound_logger = self._logger.bind(
            transaction_id=transaction.id, name=transaction.name
        )
        bound_logger.warning("transaction.rollback", reason=reason)

        result = RollbackResult(transaction_id=transaction.id)

        for op in reversed(transaction.operations):
            try:
                self._revert(op)
                result.restored_count += 1
            except OSError as exc:
                display = self._display(op.path)
                result.failed_paths.append(display)
                result.errors.append(f"{display}: {exc}")
                bound_logger.error(
                    "transaction.rollback_failed",
                    path=display,
                    op=op.type,
                    error=str(exc),
                )

        transaction.status = "rolled_back"
        self._history.append(transaction)
        self._current = None

        self._close_journal(
            "rolled_back",
            reason=reason,
            restored=result.restored_count,
            failed_paths=result.failed_paths,
        )
        bound_logger.info(
            "transaction.rolled_back",
            restored=result.restored_count,
            failed=len(result.failed_paths),
        )
        return result

    @contextmanager
    def transaction(self, name: str) -> Iterator[Transaction]:
        """Run a block inside a transaction.

        Commits when the block finishes, rolls back and re-raises when it
        raises (including KeyboardInterrupt).
        """
        self.begin(name)
        transaction = self._require_pending("begin")

        try:
            yield transaction
        except BaseException as exc:
            if self._current is transaction:
                self.rollback(str(exc) or type(exc).__name__)
            raise
        else:
            if self._current is transaction:
                self.commit()

    def _revert(self, op: FileOperation) -> None:
        if op.type == "create":
            if op.path.exists():
                op.path.unlink()
            for directory in reversed(op.created_dirs):
                if directory.is_dir() and not any(directory.iterdir()):
                    directory.rmdir()
        elif op.type in ("modify", "delete"):
            if op.original_content is not None:
                ensure_parent_dir(op.path)
                op.path.write_bytes(op.original_content)

    def _record(self, op: FileOperation) -> None:
        transaction = self._require_pending("record")
        transaction.operations.append(op)

        if self._journal is not None:
            entry: dict[str, Any] = {
                "op": op.type,
                "path": self._display(op.path),
                "ts": datetime.fromtimestamp(op.timestamp, tz=UTC).isoformat(),
            }
            if op.original_content is not None:
                entry["original_size"] = len(op.original_content)
                entry["original_hash"] = content_hash(op.original_content)
            if op.new_content is not None:
                entry["new_hash"] = content_hash(op.new_content)
            if op.created_dirs:
                entry["created_dirs"] = [self._display(d) for d in op.created_dirs]
            self._journal.append(entry)

    def _require_pending(self, action: str) -> Transaction:
        if self._current is None:
            raise TransactionStateError(action, "none")
        return self._current

    def _close_journal(self, status: str, **details: Any) -> None:
        if self._journal is None:
            return
        try:
            self._journal.finish(status, **details)
        except OSError as exc:
            self._logger.warning(
                "transaction.journal_failed",
                path=str(self._journal.path),
                error=str(exc),
            )
        finally:
            self._journal.close()
            self._journal = None

    def _absolute(self, path: Path) -> Path:
        path = Path(path)
        if not path.is_absolute() and self._root is not None:
            path = self._root / path
        return path.resolve()

    def _display(self, path: Path) -> str:
        if self._root is not None:
            try:
                return path.relative_to(self._root).as_posix()
            except ValueError:
                pass
        return str(path)
