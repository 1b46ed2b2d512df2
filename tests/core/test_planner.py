"""Tests for the generation planner's four-way classification."""

from collections.abc import Callable
from pathlib import Path

import pytest

from ddd_scaffold.core.hashing import content_hash
from ddd_scaffold.core.planner import (
    REASON_BACKUP,
    REASON_CONFLICT,
    REASON_FORCED,
    REASON_MODIFIED,
    REASON_NEW,
    REASON_SAFE_UPDATE,
    REASON_UNCHANGED,
    GenerationPlanner,
    PlanOptions,
    coerce_desired,
)
from ddd_scaffold.core.schemas import DesiredFile, FileRecord, Manifest

WriteFile = Callable[[str, str], Path]


def _manifest_with(path: str, content: str) -> Manifest:
    manifest = Manifest()
    manifest.record_file(FileRecord(path=path, hash=content_hash(content)))
    return manifest


class TestCoerceDesired:
    """Test accepted shapes of planner input."""

    def test_pair(self) -> None:
        desired = coerce_desired(("src/a.service.ts", "x"))

        assert desired.path == "src/a.service.ts"
        assert desired.kind == "service"

    def test_triple_overrides_kind(self) -> None:
        desired = coerce_desired(("src/a.service.ts", "x", "other"))

        assert desired.kind == "other"

    def test_model_passes_through(self) -> None:
        model = DesiredFile(path="a.txt", content="x")

        assert coerce_desired(model) is model


class TestClassification:
    """Test each branch of the classification rules."""

    def test_missing_file_is_created(self, project_root: Path) -> None:
        """Test that a path absent from disk is a create."""
        plan = GenerationPlanner(project_root).plan([("a.txt", "v1")], Manifest())

        assert len(plan.create) == 1
        op = plan.create[0]
        assert op.reason == REASON_NEW
        assert op.content == "v1"
        assert op.new_hash == content_hash("v1")
        assert op.existing_hash is None

    def test_missing_file_is_created_even_if_recorded(
        self, project_root: Path
    ) -> None:
        """Test that a deleted generated file is recreated."""
        manifest = _manifest_with("a.txt", "v1")

        plan = GenerationPlanner(project_root).plan([("a.txt", "v1")], manifest)

        assert [op.path for op in plan.create] == ["a.txt"]

    def test_identical_content_is_skipped(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that matching disk content is a skip even without a record."""
        write_project_file("a.txt", "v1")

        plan = GenerationPlanner(project_root).plan([("a.txt", "v1")], Manifest())

        assert len(plan.skip) == 1
        assert plan.skip[0].reason == REASON_UNCHANGED
        assert plan.skip[0].content is None
        assert plan.is_noop

    def test_untouched_generated_file_is_updated(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that disk matching the record is safe to overwrite."""
        write_project_file("a.txt", "v1")
        manifest = _manifest_with("a.txt", "v1")

        plan = GenerationPlanner(project_root).plan([("a.txt", "v2")], manifest)

        assert len(plan.update) == 1
        op = plan.update[0]
        assert op.action == "update"
        assert op.reason == REASON_SAFE_UPDATE
        assert not op.manually_modified
        assert not plan.conflict

    def test_hand_edited_file_conflicts_by_default(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that disk differing from record and desired is a conflict."""
        write_project_file("a.txt", "v1-custom")
        manifest = _manifest_with("a.txt", "v1")

        plan = GenerationPlanner(project_root).plan([("a.txt", "v2")], manifest)

        assert len(plan.conflict) == 1
        op = plan.conflict[0]
        assert op.reason == REASON_CONFLICT
        assert op.manually_modified
        assert op.existing_hash == content_hash("v1-custom")
        assert op.new_hash == content_hash("v2")

    def test_unrecorded_existing_file_conflicts(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that a file never generated by us is treated as hand-written."""
        write_project_file("a.txt", "written by a human")

        plan = GenerationPlanner(project_root).plan([("a.txt", "v1")], Manifest())

        assert [op.path for op in plan.conflict] == ["a.txt"]


class TestMergeStrategies:
    """Test resolution of hand-edited files."""

    @pytest.fixture
    def edited(self, project_root: Path, write_project_file: WriteFile) -> Manifest:
        write_project_file("a.txt", "v1-custom")
        return _manifest_with("a.txt", "v1")

    def test_prompt_is_conflict(self, project_root: Path, edited: Manifest) -> None:
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v2")], edited, PlanOptions(merge_strategy="prompt")
        )

        assert plan.has_conflicts

    def test_overwrite(self, project_root: Path, edited: Manifest) -> None:
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v2")], edited, PlanOptions(merge_strategy="overwrite")
        )

        assert [op.action for op in plan.update] == ["update"]
        assert plan.update[0].manually_modified

    def test_skip(self, project_root: Path, edited: Manifest) -> None:
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v2")], edited, PlanOptions(merge_strategy="skip")
        )

        assert len(plan.skip) == 1
        assert plan.skip[0].reason == REASON_MODIFIED
        assert plan.skip[0].manually_modified
        assert not plan.update

    def test_backup_lands_in_update_bucket(
        self, project_root: Path, edited: Manifest
    ) -> None:
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v2")], edited, PlanOptions(merge_strategy="backup")
        )

        assert len(plan.update) == 1
        assert plan.update[0].action == "backup"
        assert plan.update[0].reason == REASON_BACKUP

    def test_force_wins_over_strategy(
        self, project_root: Path, edited: Manifest
    ) -> None:
        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v2")],
            edited,
            PlanOptions(merge_strategy="skip", force=True),
        )

        assert len(plan.update) == 1
        assert plan.update[0].reason == REASON_FORCED
        assert plan.update[0].manually_modified

    def test_force_does_not_touch_identical_files(
        self, project_root: Path, write_project_file: WriteFile
    ) -> None:
        """Test that force never rewrites a file that already matches."""
        write_project_file("a.txt", "v1")

        plan = GenerationPlanner(project_root).plan(
            [("a.txt", "v1")], Manifest(), PlanOptions(force=True)
        )

        assert plan.is_noop


class TestPlanShape:
    """Test whole-plan behavior."""

    def test_duplicate_paths_rejected(self, project_root: Path) -> None:
        """Test that two outputs may not target the same file."""
        with pytest.raises(ValueError, match="Duplicate output path"):
            GenerationPlanner(project_root).plan(
                [("a.txt", "one"), ("./a.txt", "two")], Manifest()
            )

    def test_input_order_preserved_per_bucket(self, project_root: Path) -> None:
        """Test that operations keep the caller's order."""
        plan = GenerationPlanner(project_root).plan(
            [("z.txt", "1"), ("a.txt", "2"), ("m.txt", "3")], Manifest()
        )

        assert [op.path for op in plan.create] == ["z.txt", "a.txt", "m.txt"]

    def test_planning_never_writes(self, project_root: Path) -> None:
        """Test that planning leaves the project untouched."""
        GenerationPlanner(project_root).plan(
            [("src/deep/a.txt", "1")], Manifest()
        )

        assert list(project_root.iterdir()) == []

    def test_entity_and_module_carried(self, project_root: Path) -> None:
        """Test that ownership metadata reaches the operation."""
        desired = DesiredFile(
            path="src/users/user.entity.ts",
            content="x",
            entity_name="User",
            module_name="users",
        )

        plan = GenerationPlanner(project_root).plan([desired], Manifest())

        op = plan.create[0]
        assert op.kind == "entity"
        assert op.entity_name == "User"
        assert op.module_name == "users"
