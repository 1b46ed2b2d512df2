"""Custom exceptions for ddd-scaffold.

This module defines typed exceptions used throughout the application for
error handling and CLI/JSON reporting. Per-file disk failures are plain
``OSError`` instances and are collected by the executor rather than raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ddd_scaffold.fs.transaction import RollbackResult


class ScaffoldError(Exception):
    """Base exception for all ddd-scaffold errors.

    All custom exceptions should inherit from this base class to allow
    for broad exception handling when needed.
    """

    pass


class ConflictError(ScaffoldError):
    """Raised when a caller refuses to proceed with an unresolved conflict.

    Conflicts are normally returned as data in the ``conflict`` bucket of a
    Plan. This exception exists for callers that want to turn that bucket
    into a hard stop.

    Attributes:
        paths: Project-relative paths that were hand-edited and would change
        reasons: Optional per-path explanation taken from the plan
    """

    def __init__(
        self,
        paths: list[str],
        reasons: dict[str, str] | None = None,
    ) -> None:
        """Initialize ConflictError exception.

        Args:
            paths: Conflicting paths
            reasons: Per-path reasons (optional)
        """
        self.paths = paths
        self.reasons = reasons or {}

        message = f"{len(paths)} file(s) were modified manually and would be "
        message += "overwritten: " + ", ".join(paths)
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON output.

        Returns:
            Dictionary representation suitable for JSON responses
        """
        result: dict[str, Any] = {
            "error": "conflict",
            "paths": self.paths,
        }

        if self.reasons:
            result["reasons"] = self.reasons

        return result

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return f"ConflictError(paths={self.paths!r})"


class TransactionStateError(ScaffoldError):
    """Raised when the transaction state machine is driven incorrectly.

    Beginning while a transaction is pending, or committing, rolling back or
    recording with none pending, is a programming error and is never caught
    by the library itself.

    Attributes:
        action: The attempted action ('begin', 'commit', 'rollback', 'record')
        state: Current state ('pending' or 'none')
        transaction_id: Identifier of the pending transaction, if any
    """

    def __init__(
        self,
        action: str,
        state: str,
        transaction_id: str | None = None,
    ) -> None:
        """Initialize TransactionStateError exception.

        Args:
            action: Attempted action
            state: Current manager state
            transaction_id: Pending transaction identifier (optional)
        """
        self.action = action
        self.state = state
        self.transaction_id = transaction_id

        if state == "pending":
            message = f"Cannot {action}: transaction {transaction_id} already "
            message += "in progress. Commit or rollback first."
        else:
            message = f"Cannot {action}: no transaction in progress"

        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON output."""
        result: dict[str, Any] = {
            "error": "transaction_state",
            "action": self.action,
            "state": self.state,
        }

        if self.transaction_id is not None:
            result["transaction_id"] = self.transaction_id

        return result

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return (
            f"TransactionStateError(action={self.action!r}, "
            f"state={self.state!r}, "
            f"transaction_id={self.transaction_id!r})"
        )


class ManifestCorruptError(ScaffoldError):
    """Raised when a generation manifest exists but cannot be parsed.

    Attributes:
        path: Location of the manifest file
        reason: Parser or validation message
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid generation manifest {path}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON output."""
        return {
            "error": "manifest_corrupt",
            "path": self.path,
            "reason": self.reason,
        }


class GenerationAborted(ScaffoldError):
    """Raised when a generation run could not be finalized.

    Files were written but the manifest could not be persisted, so the run
    was rolled back. Continuing would corrupt future idempotence decisions.

    Attributes:
        reason: Human-readable reason for the abort
        rollback: Result of the rollback that was performed
    """

    def __init__(self, reason: str, rollback: RollbackResult | None = None) -> None:
        self.reason = reason
        self.rollback = rollback

        message = f"Generation aborted: {reason}"
        if rollback is not None and rollback.failed_paths:
            message += (
                f" ({len(rollback.failed_paths)} path(s) could not be restored: "
                + ", ".join(rollback.failed_paths)
                + ")"
            )

        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON output."""
        result: dict[str, Any] = {
            "error": "generation_aborted",
            "reason": self.reason,
        }

        if self.rollback is not None:
            result["restored_count"] = self.rollback.restored_count
            result["failed_paths"] = list(self.rollback.failed_paths)

        return result
