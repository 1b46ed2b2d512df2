"""Plan executor: apply a Plan to disk and keep the manifest in step."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ddd_scaffold.core.planner import REASON_UNCHANGED
from ddd_scaffold.core.schemas import FileRecord, Manifest, Operation, Plan
from ddd_scaffold.fs.backups import BackupStore
from ddd_scaffold.fs.fs_ops import write_file
from ddd_scaffold.fs.paths import resolve_project_path
from ddd_scaffold.fs.transaction import TransactionManager


@dataclass
class ExecutionResult:
    """Summary of one plan execution.

    Attributes:
        created: Files created
        updated: Files overwritten
        skipped: Operations in the skip bucket
        conflicts: Operations left unresolved in the conflict bucket
        errors: One message per file that could not be written
        backups: Backup files taken before overwriting hand-edited files
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    conflicts: int = 0
    errors: list[str] = field(default_factory=list)
    backups: list[Path] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


ItemCallback = Callable[[Operation, str | None], None]


class PlanExecutor:
    """Writes the create and update buckets of a Plan.

    Conflicts are never executed: they must be resolved upstream and
    resubmitted. Each file is independent, so one failure does not stop the
    rest; failures are collected in the result.
    """

    def __init__(
        self,
        root: Path,
        backups: BackupStore | None = None,
        transactions: TransactionManager | None = None,
    ) -> None:
        self.root = root.resolve()
        self.backups = backups or BackupStore(self.root)
        self.transactions = transactions

    def execute(
        self,
        plan: Plan,
        manifest: Manifest,
        on_item: ItemCallback | None = None,
    ) -> ExecutionResult:
        """Apply ``plan`` and record every written file in ``manifest``.

        Args:
            plan: Plan to apply. Not modified.
            manifest: Manifest updated in place as files are written
            on_item: Called after each create/update with the operation and
                an error message (None on success)

        Returns:
            ExecutionResult with counts and per-file errors
        """
        result = ExecutionResult(
            skipped=len(plan.skip),
            conflicts=len(plan.conflict),
        )

        for op in plan.create:
            error = self._apply(op, manifest, result, verb="create")
            if error is None:
                result.created += 1
            if on_item is not None:
                on_item(op, error)

        for op in plan.update:
            error = self._apply(op, manifest, result, verb="update")
            if error is None:
                result.updated += 1
            if on_item is not None:
                on_item(op, error)

        for op in plan.skip:
            self._note_skip(op, manifest)
        for op in plan.conflict:
            self._mark_modified(op, manifest)

        return result

    def _apply(
        self,
        op: Operation,
        manifest: Manifest,
        result: ExecutionResult,
        verb: str,
    ) -> str | None:
        target = resolve_project_path(self.root, op.path)
        try:
            if op.content is None:
                raise ValueError("operation has no content")
            if op.action == "backup":
                backup_path = self.backups.backup(op.path)
                if backup_path is not None:
                    result.backups.append(backup_path)
            write_file(target, op.content, self.transactions)
        except (OSError, ValueError) as e:
            message = f"Failed to {verb} {op.path}: {e}"
            result.errors.append(message)
            return message

        self._record_written(op, manifest)
        return None

    def _record_written(self, op: Operation, manifest: Manifest) -> None:
        now = datetime.now(UTC)
        existing = manifest.get_file(op.path)
        new_hash = op.new_hash or ""

        if op.action == "create" or existing is None:
            record = FileRecord(
                path=op.path,
                kind=op.kind,
                entity_name=op.entity_name,
                module_name=op.module_name,
                hash=new_hash,
                generated_at=now,
            )
        else:
            record = existing.model_copy(
                update={
                    "hash": new_hash,
                    "modified_at": now,
                    "is_modified": False,
                    "kind": op.kind,
                    "entity_name": op.entity_name or existing.entity_name,
                    "module_name": op.module_name or existing.module_name,
                }
            )

        manifest.record_file(record)

    def _note_skip(self, op: Operation, manifest: Manifest) -> None:
        if op.manually_modified:
            self._mark_modified(op, manifest)
            return

        if op.reason != REASON_UNCHANGED or op.existing_hash is None:
            return

        # The file already holds exactly the desired content. Make the record
        # agree with it, so later template changes count as safe updates.
        existing = manifest.get_file(op.path)
        if existing is None:
            manifest.record_file(
                FileRecord(
                    path=op.path,
                    kind=op.kind,
                    entity_name=op.entity_name,
                    module_name=op.module_name,
                    hash=op.existing_hash,
                )
            )
        elif existing.hash != op.existing_hash or existing.is_modified:
            manifest.record_file(
                existing.model_copy(
                    update={
                        "hash": op.existing_hash,
                        "modified_at": datetime.now(UTC),
                        "is_modified": False,
                    }
                )
            )

    def _mark_modified(self, op: Operation, manifest: Manifest) -> None:
        existing = manifest.get_file(op.path)
        if existing is None or existing.is_modified:
            return
        manifest.record_file(existing.model_copy(update={"is_modified": True}))
