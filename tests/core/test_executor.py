"""Tests for plan execution and manifest bookkeeping."""

from collections.abc import Callable
from pathlib import Path

from ddd_scaffold.core.executor import PlanExecutor
from ddd_scaffold.core.hashing import content_hash
from ddd_scaffold.core.planner import GenerationPlanner, PlanOptions
from ddd_scaffold.core.schemas import FileRecord, Manifest, Operation
from ddd_scaffold.fs.backups import BackupStore
from ddd_scaffold.fs.transaction import TransactionManager

WriteFile = Callable[[str, str], Path]


def _generate(
    root: Path,
    files: list[tuple[str, str]],
    manifest: Manifest,
    options: PlanOptions | None = None,
) -> None:
    plan = GenerationPlanner(root).plan(files, manifest, options)
    PlanExecutor(root).execute(plan, manifest)


class TestExecute:
    """Test writing the create and update buckets."""

    def test_creates_files_and_records_them(
        self, project_root: Path, sample_module_files: list[tuple[str, str]]
    ) -> None:
        """Test that creates write bytes and add manifest records."""
        manifest = Manifest()
        plan = GenerationPlanner(project_root).plan(sample_module_files, manifest)

        result = PlanExecutor(project_root).execute(plan, manifest)

        assert result.success
        assert result.created == 3
        for path, content in sample_module_files:
            assert (project_root / path).read_text(encoding="utf-8") == content
            record = manifest.get_file(path)
            assert record is not None
            assert record.hash == content_hash(content)
            assert not record.is_modified
        assert manifest.get_file("src/users/user.entity.ts").kind == "entity"  # type: ignore[union-attr]

    def test_update_refreshes_record(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that a safe update rewrites the file and its hash."""
        manifest = Manifest()
        _generate(project_root, [("a.txt", "v1")], manifest)
        first = manifest.get_file("a.txt")
        assert first is not None

        plan = GenerationPlanner(project_root).plan([("a.txt", "v2")], manifest)
        result = PlanExecutor(project_root).execute(plan, manifest)

        assert result.updated == 1
        assert (project_root / "a.txt").read_text() == "v2"
        record = manifest.get_file("a.txt")
        assert record is not None
        assert record.hash == content_hash("v2")
        assert record.generated_at == first.generated_at
        assert record.modified_at is not None
        assert manifest.checksums["a.txt"] == content_hash("v2")

    def test_plan_is_not_mutated(self, project_root: Path) -> None:
        """Test that executing leaves the plan unchanged."""
        plan = GenerationPlanner(project_root).plan([("a.txt", "v1")], Manifest())
        before = plan.model_dump()

        PlanExecutor(project_root).execute(plan, Manifest())

        assert plan.model_dump() == before

    def test_on_item_called_per_write(self, project_root: Path) -> None:
        """Test the per-item callback sees every create and update."""
        seen: list[tuple[str, str | None]] = []
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "1"), ("b.txt", "2")], Manifest()
        )

        def on_item(op: Operation, error: str | None) -> None:
            seen.append((op.path, error))

        PlanExecutor(project_root).execute(plan, Manifest(), on_item=on_item)

        assert seen == [("a.txt", None), ("b.txt", None)]


class TestFailures:
    """Test per-file failure handling."""

    def test_failure_is_collected_and_processing_continues(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that one unwritable path does not stop the others."""
        write_project_file("blocker", "a file, not a directory")
        manifest = Manifest()
        plan = GenerationPlanner(project_root).plan(
            [("blocker/child.txt", "x"), ("ok.txt", "y")], manifest
        )

        result = PlanExecutor(project_root).execute(plan, manifest)

        assert not result.success
        assert result.created == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Failed to create blocker/child.txt:")
        assert (project_root / "ok.txt").read_text() == "y"
        assert manifest.get_file("blocker/child.txt") is None
        assert manifest.get_file("ok.txt") is not None

    def test_failed_item_reported_to_callback(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test the callback receives the error message."""
        write_project_file("blocker", "x")
        errors: list[str | None] = []
        plan = GenerationPlanner(project_root).plan(
            [("blocker/child.txt", "x")], Manifest()
        )

        PlanExecutor(project_root).execute(
            plan, Manifest(), on_item=lambda op, error: errors.append(error)
        )

        assert errors[0] is not None
        assert "blocker/child.txt" in errors[0]


class TestBookkeeping:
    """Test manifest updates for operations that write nothing."""

    def test_conflict_not_written_and_flagged(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test conflicts are left alone and marked as modified."""
        manifest = Manifest()
        _generate(project_root, [("a.txt", "v1")], manifest)
        write_project_file("a.txt", "v1-custom")

        plan = GenerationPlanner(project_root).plan([("a.txt", "v2")], manifest)
        result = PlanExecutor(project_root).execute(plan, manifest)

        assert result.conflicts == 1
        assert result.updated == 0
        assert (project_root / "a.txt").read_text() == "v1-custom"
        record = manifest.get_file("a.txt")
        assert record is not None
        assert record.is_modified
        assert record.hash == content_hash("v1")

    def test_unchanged_unrecorded_file_is_adopted(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test a file already holding the desired content joins the manifest."""
        write_project_file("a.txt", "v1")
        manifest = Manifest()

        _generate(project_root, [("a.txt", "v1")], manifest)

        record = manifest.get_file("a.txt")
        assert record is not None
        assert record.hash == content_hash("v1")

    def test_stale_record_refreshed_on_skip(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test a hand edit that matches the new output clears the flag."""
        write_project_file("a.txt", "v2")
        manifest = Manifest()
        manifest.record_file(
            FileRecord(path="a.txt", hash=content_hash("v1"), is_modified=True)
        )

        _generate(project_root, [("a.txt", "v2")], manifest)

        record = manifest.get_file("a.txt")
        assert record is not None
        assert record.hash == content_hash("v2")
        assert not record.is_modified

    def test_backup_taken_before_overwrite(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test the backup strategy copies the hand-edited bytes first."""
        manifest = Manifest()
        _generate(project_root, [("src/a.txt", "v1")], manifest)
        write_project_file("src/a.txt", "v1-custom")

        plan = GenerationPlanner(project_root).plan(
            [("src/a.txt", "v2")], manifest, PlanOptions(merge_strategy="backup")
        )
        result = PlanExecutor(project_root).execute(plan, manifest)

        assert result.updated == 1
        assert len(result.backups) == 1
        assert result.backups[0].read_text() == "v1-custom"
        assert (project_root / "src/a.txt").read_text() == "v2"
        assert len(BackupStore(project_root).list_backups("src/a.txt")) == 1
        assert not manifest.get_file("src/a.txt").is_modified  # type: ignore[union-attr]


class TestIdempotence:
    """Test repeated generation runs."""

    def test_second_run_is_all_skip(
        self, project_root: Path, sample_module_files: list[tuple[str, str]]
    ) -> None:
        """Test plan, execute, then plan again yields only skips."""
        manifest = Manifest()
        _generate(project_root, sample_module_files, manifest)

        plan = GenerationPlanner(project_root).plan(sample_module_files, manifest)

        assert plan.is_noop
        assert len(plan.skip) == len(sample_module_files)
        assert not plan.conflict

    def test_edit_lifecycle_of_one_file(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test v1 create, rerun skip, v2 update, hand edit, v3 conflict."""
        manifest = Manifest()
        planner = GenerationPlanner(project_root)
        executor = PlanExecutor(project_root)

        plan = planner.plan([("a.txt", "v1")], manifest)
        assert [op.path for op in plan.create] == ["a.txt"]
        executor.execute(plan, manifest)

        plan = planner.plan([("a.txt", "v1")], manifest)
        assert [op.path for op in plan.skip] == ["a.txt"]

        plan = planner.plan([("a.txt", "v2")], manifest)
        assert [op.path for op in plan.update] == ["a.txt"]
        executor.execute(plan, manifest)
        assert (project_root / "a.txt").read_text() == "v2"

        write_project_file("a.txt", "v2-custom")
        plan = planner.plan([("a.txt", "v3")], manifest)
        assert [op.path for op in plan.conflict] == ["a.txt"]
        executor.execute(plan, manifest)
        assert (project_root / "a.txt").read_text() == "v2-custom"


class TestWithTransaction:
    """Test executing through a transaction manager."""

    def test_rollback_undoes_execution(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test every create and update is reverted byte-for-byte."""
        manifest = Manifest()
        _generate(project_root, [("a.txt", "v1")], manifest)
        original = (project_root / "a.txt").read_bytes()

        transactions = TransactionManager(project_root)
        transactions.begin("regenerate")
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v2"), ("src/new/b.txt", "b")], manifest
        )
        PlanExecutor(project_root, transactions=transactions).execute(
            plan, manifest.model_copy(deep=True)
        )
        assert (project_root / "src/new/b.txt").exists()

        result = transactions.rollback("test")

        assert result.success
        assert result.restored_count == 2
        assert (project_root / "a.txt").read_bytes() == original
        assert not (project_root / "src").exists()
