"""Generation chain orchestrating plan and execution with rollback.

This module provides the GenerationChain class that runs one generation:
load the manifest, classify the rendered outputs, write them inside a
transaction, then either persist the manifest and commit, or roll every
write back. It handles structured logging and Rich console output.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import structlog
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)

from ddd_scaffold.core.errors import GenerationAborted
from ddd_scaffold.core.executor import ExecutionResult, PlanExecutor
from ddd_scaffold.core.plan_summary import summarize_plan
from ddd_scaffold.core.planner import DesiredInput, GenerationPlanner, PlanOptions
from ddd_scaffold.core.schemas import (
    EntitySpec,
    GenerationRequest,
    Manifest,
    MergeStrategy,
    Operation,
    Plan,
)
from ddd_scaffold.fs.backups import BackupStore
from ddd_scaffold.fs.manifest import ManifestStore, register_entity
from ddd_scaffold.fs.transaction import RollbackResult, TransactionManager

Mode = Literal["continue_on_error", "transactional", "dry_run"]
Status = Literal["planned", "unchanged", "committed", "rolled_back"]


@dataclass
class GenerationOptions:
    """Options for generation runs.

    Attributes:
        root: Project root to generate into
        mode: continue_on_error persists partial progress; transactional
            rolls the whole run back on any per-file error; dry_run only plans
        merge_strategy: How to resolve hand-edited files
        force: Overwrite hand-edited files regardless of strategy
        transaction_name: Name recorded for the transaction
        journal: Write a transaction journal under the state directory
    """

    root: str
    mode: Mode = "continue_on_error"
    merge_strategy: MergeStrategy = "prompt"
    force: bool = False
    transaction_name: str = "generate"
    journal: bool = True


@dataclass
class GenerationReport:
    """Summary report of one generation run."""

    plan: Plan
    status: Status
    result: ExecutionResult | None = None
    transaction_id: str | None = None
    manifest_path: Path | None = None
    journal_path: Path | None = None
    rollback: RollbackResult | None = None
    entities: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        if self.status == "rolled_back":
            return False
        return self.result is None or self.result.success


class GenerationChain:
    """Orchestrates generation runs with transactions and structured logging."""

    def __init__(self, logger: Any = None, ui: Console | None = None) -> None:
        """Initialize generation chain.

        Args:
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console()

    def plan(
        self,
        request: GenerationRequest | Sequence[DesiredInput],
        opts: GenerationOptions,
    ) -> Plan:
        """Classify a request against the project without writing anything."""
        files, _ = _unpack(request)
        root = Path(opts.root).resolve()
        manifest = ManifestStore(root).load()
        return self._plan(root, files, manifest, opts)

    def generate(
        self,
        request: GenerationRequest | Sequence[DesiredInput],
        opts: GenerationOptions,
    ) -> GenerationReport:
        """Plan and execute a request.

        Returns:
            GenerationReport describing what happened

        Raises:
            GenerationAborted: If files were written but the manifest could
                not be saved; every write has been rolled back
        """
        files, entities = _unpack(request)
        root = Path(opts.root).resolve()
        store = ManifestStore(root)
        manifest = store.load()

        bound_logger = self._logger.bind(
            root=str(root),
            mode=opts.mode,
            merge_strategy=opts.merge_strategy,
            force=opts.force,
        )

        plan = self._plan(root, files, manifest, opts)
        bound_logger.info(
            "generation.plan",
            create=len(plan.create),
            update=len(plan.update),
            skip=len(plan.skip),
            conflict=len(plan.conflict),
        )

        if opts.mode == "dry_run":
            self._ui.print(escape(summarize_plan(plan)))
            return GenerationReport(plan=plan, status="planned")

        working = manifest.model_copy(deep=True)

        if plan.is_noop:
            return self._finish_noop(
                plan, manifest, working, entities, store, bound_logger
            )

        transactions = TransactionManager(
            root, journal=opts.journal, logger=self._logger
        )
        transaction_id = transactions.begin(opts.transaction_name)
        journal_path = transactions.journal_path
        bound_logger = bound_logger.bind(transaction_id=transaction_id)
        executor = PlanExecutor(root, BackupStore(root), transactions)

        try:
            result = self._execute_with_progress(
                executor, plan, working, opts, bound_logger
            )
        except BaseException as exc:
            rollback = transactions.rollback(str(exc) or type(exc).__name__)
            self._log_rollback(bound_logger, rollback, str(exc))
            raise

        self._show_conflicts(plan)

        if opts.mode == "transactional" and result.errors:
            rollback = transactions.rollback("; ".join(result.errors))
            self._log_rollback(bound_logger, rollback, "per-file errors")
            return GenerationReport(
                plan=plan,
                status="rolled_back",
                result=result,
                transaction_id=transaction_id,
                journal_path=journal_path,
                rollback=rollback,
            )

        registered = self._register_entities(entities, working, bound_logger)

        try:
            manifest_file = store.save(working)
        except OSError as exc:
            rollback = transactions.rollback(str(exc))
            self._log_rollback(bound_logger, rollback, str(exc))
            raise GenerationAborted(str(exc), rollback) from exc

        transactions.commit()

        bound_logger.info(
            "generation.summary",
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            conflicts=result.conflicts,
            errors=len(result.errors),
            backups=len(result.backups),
            entities=registered,
            manifest_path=str(manifest_file),
        )

        return GenerationReport(
            plan=plan,
            status="committed",
            result=result,
            transaction_id=transaction_id,
            manifest_path=manifest_file,
            journal_path=journal_path,
            entities=registered,
        )

    def _plan(
        self,
        root: Path,
        files: list[DesiredInput],
        manifest: Manifest,
        opts: GenerationOptions,
    ) -> Plan:
        planner = GenerationPlanner(root)
        return planner.plan(
            files,
            manifest,
            PlanOptions(merge_strategy=opts.merge_strategy, force=opts.force),
        )

    def _finish_noop(
        self,
        plan: Plan,
        manifest: Manifest,
        working: Manifest,
        entities: list[EntitySpec],
        store: ManifestStore,
        bound_logger: Any,
    ) -> GenerationReport:
        """Nothing to write: only bring bookkeeping up to date."""
        result = PlanExecutor(store.root).execute(plan, working)
        registered = self._register_entities(entities, working, bound_logger)
        self._show_conflicts(plan)

        manifest_file: Path | None = None
        if working != manifest:
            try:
                manifest_file = store.save(working)
            except OSError as exc:
                raise GenerationAborted(str(exc)) from exc

        bound_logger.info(
            "generation.summary",
            created=0,
            updated=0,
            skipped=result.skipped,
            conflicts=result.conflicts,
            entities=registered,
        )
        return GenerationReport(
            plan=plan,
            status="unchanged",
            result=result,
            manifest_path=manifest_file,
            entities=registered,
        )

    def _execute_with_progress(
        self,
        executor: PlanExecutor,
        plan: Plan,
        working: Manifest,
        opts: GenerationOptions,
        bound_logger: Any,
    ) -> ExecutionResult:
        with self._create_progress() as progress:
            task = progress.add_task(
                f"Generate — {opts.mode}",
                total=len(plan.create) + len(plan.update),
            )

            def on_item(op: Operation, error: str | None) -> None:
                progress.advance(task)
                bound_logger.info(
                    "generation.item",
                    path=op.path,
                    action=op.action,
                    reason=op.reason,
                    status="failed" if error else "applied",
                    error=error,
                )
                self._show_item_result(op, error)

            return executor.execute(plan, working, on_item=on_item)

    def _register_entities(
        self,
        entities: list[EntitySpec],
        manifest: Manifest,
        bound_logger: Any,
    ) -> list[str]:
        """Register entities whose files are all recorded in the manifest."""
        registered: list[str] = []

        for entity in entities:
            missing = [
                path
                for path in entity.generated_files
                if manifest.get_file(path) is None
            ]
            if missing:
                bound_logger.warning(
                    "generation.entity_skipped",
                    entity=entity.name,
                    module=entity.module,
                    missing=missing,
                )
                continue

            existing = manifest.find_entity(entity.name, entity.module)
            if (
                existing is not None
                and existing.fields == entity.fields
                and existing.relations == entity.relations
                and existing.generated_files == entity.generated_files
            ):
                continue

            register_entity(
                manifest,
                name=entity.name,
                module=entity.module,
                fields=entity.fields,
                relations=entity.relations,
                generated_files=entity.generated_files,
            )
            registered.append(f"{entity.module}/{entity.name}")

        return registered

    def _log_rollback(
        self, bound_logger: Any, rollback: RollbackResult, reason: str
    ) -> None:
        bound_logger.error(
            "generation.rollback",
            reason=reason,
            restored=rollback.restored_count,
            failed_paths=rollback.failed_paths,
        )
        self._ui.print(
            f"↩️ [yellow]ROLLED BACK[/yellow] {rollback.restored_count} operation(s)"
        )
        for path in rollback.failed_paths:
            self._ui.print(
                f"❌ [red]NOT RESTORED[/red] {escape(path)} (fix manually)"
            )

    def _create_progress(self) -> Progress:
        """Create Rich progress display."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self._ui,
            transient=False,
        )

    def _show_item_result(self, op: Operation, error: str | None) -> None:
        """Show Rich output for item result."""
        if error is not None:
            self._ui.print(
                f"❌ [red]FAILED[/red] {escape(op.path)} ({escape(error)})"
            )
        elif op.action == "create":
            self._ui.print(f"✅ [green]CREATED[/green] {escape(op.path)}")
        elif op.action == "backup":
            self._ui.print(f"💾 [cyan]UPDATED[/cyan] {escape(op.path)} (backed up)")
        else:
            self._ui.print(f"✏️ [cyan]UPDATED[/cyan] {escape(op.path)}")

    def _show_conflicts(self, plan: Plan) -> None:
        for op in plan.conflict:
            reason = escape(op.reason or "")
            self._ui.print(
                f"⚠️ [yellow]CONFLICT[/yellow] {escape(op.path)} ({reason})"
            )


def _unpack(
    request: GenerationRequest | Sequence[DesiredInput],
) -> tuple[list[DesiredInput], list[EntitySpec]]:
    if isinstance(request, GenerationRequest):
        return list(request.files), list(request.entities)
    return list(request), []
