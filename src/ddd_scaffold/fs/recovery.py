"""Recovery points for batches of project files.

A recovery point copies every project file matching a set of glob patterns
into ``<state-dir>/recovery/<id>/`` before a risky batch of changes, so the
whole set can be put back later. Unlike a backup, which keeps the history of a
single file, a recovery point restores many files as one unit.

Layout of one point::

    recovery/<id>/point.json      index (RecoveryPoint, camelCase JSON)
    recovery/<id>/files/<path>    captured bytes, mirroring the project
"""

import fnmatch
import os
import re
import shutil
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from ddd_scaffold.core.constants import RECOVERY_SKIP_DIRS
from ddd_scaffold.core.hashing import content_hash, file_hash
from ddd_scaffold.core.schemas import RecoveryFile, RecoveryPoint
from ddd_scaffold.fs.fs_ops import write_file
from ddd_scaffold.fs.paths import (
    normalize_relative_path,
    recovery_dir,
    resolve_project_path,
    resolve_state_dir,
)
from ddd_scaffold.fs.transaction import TransactionManager
from ddd_scaffold.utils.debug import debug

INDEX_FILENAME = "point.json"
FILES_DIRNAME = "files"
POINT_ID_PATTERN = re.compile(r"^rp_\d+_[0-9a-f]{6}$")


@dataclass
class RecoveryResult:
    """Outcome of restoring a recovery point.

    Attributes:
        point_id: Recovery point that was restored
        restored: Paths rewritten from the snapshot
        unchanged: Paths that already held the captured bytes
        failed_paths: Paths that could not be restored
        errors: One message per failed path
    """

    point_id: str
    restored: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed_paths: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_paths


def _new_point_id() -> str:
    return f"rp_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def matches_any(path: str, patterns: Sequence[str]) -> bool:
    """Check a project-relative path against glob patterns.

    ``*`` also matches ``/``, so ``*.entity.ts`` selects entity files at any
    depth and ``src/users/*`` selects everything below ``src/users``.
    """
    return any(fnmatch.fnmatchcase(path, pattern) for pattern in patterns)


class RecoveryStore:
    """Create, list, restore, and delete recovery points of one project."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    @property
    def recovery_dir(self) -> Path:
        return recovery_dir(self.root)

    def create(self, name: str, patterns: Sequence[str]) -> RecoveryPoint:
        """Capture every project file matching ``patterns``.

        Hidden directories (the state directory among them) and the names in
        RECOVERY_SKIP_DIRS are never descended into.

        Raises:
            ValueError: If no pattern is given
            OSError: If the snapshot cannot be written
        """
        if not patterns:
            raise ValueError("At least one pattern is required")

        point = RecoveryPoint(id=_new_point_id(), name=name, patterns=list(patterns))
        point_dir = self.recovery_dir / point.id
        files_dir = point_dir / FILES_DIRNAME

        try:
            for relative in self._scan(patterns):
                source = resolve_project_path(self.root, relative)
                data = source.read_bytes()
                target = files_dir / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
                point.files.append(
                    RecoveryFile(path=relative, hash=content_hash(data), size=len(data))
                )

            point_dir.mkdir(parents=True, exist_ok=True)
            (point_dir / INDEX_FILENAME).write_text(
                point.model_dump_json(by_alias=True, indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError:
            shutil.rmtree(point_dir, ignore_errors=True)
            raise

        debug(f"Recovery point {point.id} '{name}' captured {len(point.files)} file(s)")
        return point

    def load(self, point_id: str) -> RecoveryPoint | None:
        """Read a recovery point index, or None if there is no such point.

        Raises:
            ValueError: If the index exists but is not a valid recovery point
        """
        if not POINT_ID_PATTERN.match(point_id):
            return None
        index = self.recovery_dir / point_id / INDEX_FILENAME
        if not index.is_file():
            return None

        try:
            return RecoveryPoint.model_validate_json(index.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ValueError(f"Invalid recovery point {index}: {e}") from e

    def list_points(self) -> list[RecoveryPoint]:
        """Every readable recovery point, oldest first."""
        if not self.recovery_dir.is_dir():
            return []

        points: list[RecoveryPoint] = []
        for point_dir in sorted(self.recovery_dir.iterdir()):
            if not point_dir.is_dir():
                continue
            try:
                point = self.load(point_dir.name)
            except ValueError as e:
                debug(str(e))
                continue
            if point is not None:
                points.append(point)

        points.sort(key=lambda p: p.created_at)
        return points

    def restore(
        self,
        point_id: str,
        transactions: TransactionManager | None = None,
    ) -> RecoveryResult:
        """Write every captured file back into the project.

        Each file is restored independently; failures are collected and do
        not stop the rest. Files created after the point was taken are left
        alone. When a transaction manager is passed, every write is recorded
        so the caller can roll the restore back.

        Raises:
            KeyError: If there is no such recovery point
        """
        point = self.load(point_id)
        if point is None:
            raise KeyError(point_id)

        result = RecoveryResult(point_id=point.id)
        files_dir = self.recovery_dir / point.id / FILES_DIRNAME

        for entry in point.files:
            try:
                relative = normalize_relative_path(entry.path)
                data = (files_dir / relative).read_bytes()
                if content_hash(data) != entry.hash:
                    raise ValueError("captured copy does not match its hash")

                target = resolve_project_path(self.root, relative)
                if file_hash(target) == entry.hash:
                    result.unchanged.append(relative)
                    continue

                write_file(target, data, transactions)
                result.restored.append(relative)
            except (OSError, ValueError) as e:
                result.failed_paths.append(entry.path)
                result.errors.append(f"{entry.path}: {e}")

        debug(
            "Recovery point restored",
            point_id=point.id,
            restored=len(result.restored),
            unchanged=len(result.unchanged),
            failed=len(result.failed_paths),
        )
        return result

    def delete(self, point_id: str) -> bool:
        """Remove a recovery point. Returns False if it does not exist."""
        if not POINT_ID_PATTERN.match(point_id):
            return False
        point_dir = self.recovery_dir / point_id
        if not (point_dir / INDEX_FILENAME).is_file():
            return False
        shutil.rmtree(point_dir)
        return True

    def _scan(self, patterns: Sequence[str]) -> list[str]:
        state_dir = resolve_state_dir(self.root)
        found: list[str] = []

        for current, dirnames, filenames in os.walk(self.root):
            current_path = Path(current)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not d.startswith(".")
                and d not in RECOVERY_SKIP_DIRS
                and current_path / d != state_dir
            )
            for filename in sorted(filenames):
                relative = normalize_relative_path(
                    (current_path / filename).relative_to(self.root)
                )
                if matches_any(relative, patterns):
                    found.append(relative)

        return found
