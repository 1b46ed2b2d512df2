"""Tests for project and state path helpers."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from ddd_scaffold.fs.paths import (
    BACKUP_NAME_PATTERN,
    format_backup_timestamp,
    history_dir,
    journal_dir,
    manifest_path,
    missing_parent_dirs,
    next_backup_timestamp,
    normalize_relative_path,
    parse_backup_timestamp,
    prune_empty_dirs,
    relative_to_root,
    resolve_project_path,
    resolve_state_dir,
)


class TestNormalizeRelativePath:
    """Test canonical manifest keys."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("a.txt", "a.txt"),
            ("./src/a.ts", "src/a.ts"),
            ("src\\users\\a.ts", "src/users/a.ts"),
            ("src//users/./a.ts", "src/users/a.ts"),
            ("  src/a.ts  ", "src/a.ts"),
        ],
    )
    def test_normalizes(self, raw: str, expected: str) -> None:
        assert normalize_relative_path(raw) == expected

    def test_unicode_nfc(self) -> None:
        """Test decomposed and composed forms map to one key."""
        decomposed = "cafe\u0301.ts"

        assert normalize_relative_path(decomposed) == "caf\u00e9.ts"

    @pytest.mark.parametrize("raw", ["", "   ", ".", "/abs/a.ts", "D:\\a.ts", "a/../../b"])
    def test_rejects(self, raw: str) -> None:
        with pytest.raises(ValueError):
            normalize_relative_path(raw)


class TestProjectPaths:
    """Test mapping between manifest keys and disk paths."""

    def test_round_trip(self, tmp_path: Path) -> None:
        absolute = resolve_project_path(tmp_path, "src/a.ts")

        assert absolute == tmp_path.resolve() / "src" / "a.ts"
        assert relative_to_root(tmp_path, absolute) == "src/a.ts"

    def test_state_layout(self, tmp_path: Path) -> None:
        state = tmp_path.resolve() / ".ddd"

        assert resolve_state_dir(tmp_path) == state
        assert manifest_path(tmp_path) == state / "generation-manifest.json"
        assert history_dir(tmp_path) == state / "history"
        assert journal_dir(tmp_path) == state / "transactions"

    def test_state_dir_env_override(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DDD_SCAFFOLD_STATE_DIR", ".scaffold-state")

        assert resolve_state_dir(tmp_path) == tmp_path.resolve() / ".scaffold-state"


class TestBackupTimestamps:
    """Test file-name-safe timestamps."""

    def test_format_is_fixed_width(self) -> None:
        moment = datetime(2024, 1, 2, 3, 4, 5, 6, tzinfo=UTC)

        assert format_backup_timestamp(moment) == "2024-01-02T03-04-05-000006Z"

    def test_parse_inverts_format(self) -> None:
        moment = datetime(2024, 12, 31, 23, 59, 59, 999999, tzinfo=UTC)

        assert parse_backup_timestamp(format_backup_timestamp(moment)) == moment

    def test_lexicographic_is_chronological(self) -> None:
        early = format_backup_timestamp(datetime(2024, 1, 9, tzinfo=UTC))
        late = format_backup_timestamp(datetime(2024, 1, 10, tzinfo=UTC))

        assert early < late

    def test_name_pattern(self) -> None:
        match = BACKUP_NAME_PATTERN.match("user.entity.ts.2024-01-02T03-04-05-000006Z.bak")

        assert match is not None
        assert match["name"] == "user.entity.ts"
        assert match["timestamp"] == "2024-01-02T03-04-05-000006Z"

    def test_next_timestamp_avoids_existing(self, tmp_path: Path) -> None:
        first = next_backup_timestamp(tmp_path, "a.txt")
        (tmp_path / f"a.txt.{first}.bak").write_text("x")

        second = next_backup_timestamp(tmp_path, "a.txt")

        assert second != first
        assert not (tmp_path / f"a.txt.{second}.bak").exists()


class TestPruneEmptyDirs:
    """Test removal of directories left empty by backup cleanup."""

    def test_removes_empty_chain_up_to_root(self, tmp_path: Path) -> None:
        leaf = tmp_path / "a" / "b" / "c"
        leaf.mkdir(parents=True)

        removed = prune_empty_dirs(leaf, stop_at=tmp_path)

        assert removed == 3
        assert tmp_path.exists()
        assert not (tmp_path / "a").exists()

    def test_stops_at_non_empty_directory(self, tmp_path: Path) -> None:
        leaf = tmp_path / "a" / "b"
        leaf.mkdir(parents=True)
        (tmp_path / "a" / "keep.txt").write_text("x")

        removed = prune_empty_dirs(leaf, stop_at=tmp_path)

        assert removed == 1
        assert (tmp_path / "a").exists()

    def test_never_leaves_boundary(self, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        root = tmp_path / "root"
        root.mkdir()

        assert prune_empty_dirs(outside, stop_at=root) == 0
        assert outside.exists()
        assert prune_empty_dirs(root, stop_at=root) == 0
        assert root.exists()


class TestMissingParentDirs:
    """Test detection of directories a write would have to create."""

    def test_lists_missing_ancestors_outermost_first(self, tmp_path: Path) -> None:
        target = tmp_path / "src" / "users" / "user.entity.ts"

        assert missing_parent_dirs(target) == [
            tmp_path / "src",
            tmp_path / "src" / "users",
        ]

    def test_existing_parent_needs_nothing(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()

        assert missing_parent_dirs(tmp_path / "src" / "a.ts") == []
