"""Path utilities for generator state and project files.

This module resolves where generator state lives inside a project, maps
project-relative paths onto disk, and names timestamped backup files.
"""

import os
import re
import unicodedata
from datetime import UTC, datetime, timedelta
from pathlib import Path, PurePosixPath

from ddd_scaffold.core.constants import (
    HISTORY_DIRNAME,
    JOURNAL_DIRNAME,
    MANIFEST_FILENAME,
    RECOVERY_DIRNAME,
    STATE_DIR_ENV,
    STATE_DIR_NAME,
)

#: ``<name>.<YYYY-MM-DDTHH-MM-SS-ffffffZ>.bak``
BACKUP_NAME_PATTERN = re.compile(
    r"^(?P<name>.+)\.(?P<timestamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z)\.bak$"
)


def normalize_relative_path(path: str | Path) -> str:
    """Normalize a project-relative path to its canonical manifest key.

    Args:
        path: Relative path using either separator

    Returns:
        NFC-normalized POSIX path without ``.`` segments

    Raises:
        ValueError: If the path is empty, absolute, or climbs above the root
    """
    raw = str(path).strip().replace("\\", "/")
    raw = unicodedata.normalize("NFC", raw)

    if not raw:
        raise ValueError("Path must not be empty")

    posix = PurePosixPath(raw)
    if posix.is_absolute() or re.match(r"^[A-Za-z]:", raw):
        raise ValueError(f"Path must be relative to the project root: {raw}")

    parts = [part for part in posix.parts if part not in ("", ".")]
    if not parts:
        raise ValueError(f"Path does not name a file: {raw}")
    if ".." in parts:
        raise ValueError(f"Path escapes the project root: {raw}")

    return "/".join(parts)


def resolve_project_path(root: Path, relative: str) -> Path:
    """Map a manifest key onto an absolute path inside ``root``."""
    return root.resolve() / normalize_relative_path(relative)


def relative_to_root(root: Path, path: Path) -> str:
    """Inverse of resolve_project_path for paths inside ``root``."""
    return normalize_relative_path(path.resolve().relative_to(root.resolve()))


def resolve_state_dir(root: Path) -> Path:
    """Resolve the generator state directory for a project.

    ``DDD_SCAFFOLD_STATE_DIR`` overrides the directory name; it is always
    interpreted relative to the project root.
    """
    name = os.getenv(STATE_DIR_ENV) or STATE_DIR_NAME
    return root.resolve() / normalize_relative_path(name)


def manifest_path(root: Path) -> Path:
    return resolve_state_dir(root) / MANIFEST_FILENAME


def history_dir(root: Path) -> Path:
    return resolve_state_dir(root) / HISTORY_DIRNAME


def journal_dir(root: Path) -> Path:
    return resolve_state_dir(root) / JOURNAL_DIRNAME


def recovery_dir(root: Path) -> Path:
    return resolve_state_dir(root) / RECOVERY_DIRNAME


def format_backup_timestamp(moment: datetime | None = None) -> str:
    """Format a fixed-width, zero-padded UTC timestamp safe for file names.

    Lexicographic order of the result equals chronological order.
    """
    moment = (moment or datetime.now(UTC)).astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond:06d}Z"


def parse_backup_timestamp(value: str) -> datetime:
    """Parse a timestamp produced by format_backup_timestamp."""
    return datetime.strptime(value, "%Y-%m-%dT%H-%M-%S-%fZ").replace(tzinfo=UTC)


def next_backup_timestamp(target_dir: Path, name: str) -> str:
    """Return a timestamp whose backup file does not exist yet in ``target_dir``."""
    moment = datetime.now(UTC)
    timestamp = format_backup_timestamp(moment)
    while (target_dir / f"{name}.{timestamp}.bak").exists():
        moment += timedelta(microseconds=1)
        timestamp = format_backup_timestamp(moment)
    return timestamp


def missing_parent_dirs(path: Path) -> list[Path]:
    """Return the ancestors of ``path`` that do not exist yet, outermost first.

    These are exactly the directories ensure_parent_dir(path) would create.
    """
    missing: list[Path] = []
    current = path.parent
    while current != current.parent and not current.exists():
        missing.append(current)
        current = current.parent
    missing.reverse()
    return missing


def ensure_parent_dir(path: Path) -> None:
    """Ensure parent directory exists for a path.

    Args:
        path: Path whose parent directory should exist

    Raises:
        OSError: If parent directory cannot be created
    """
    parent = path.parent
    if not parent.exists():
        parent.mkdir(parents=True, exist_ok=True)


def prune_empty_dirs(start: Path, stop_at: Path | None = None) -> int:
    """Remove ``start`` and its ancestors while they are empty directories.

    Never removes ``stop_at`` or anything above it. Stops quietly at the
    first directory that is non-empty or cannot be removed.

    Returns:
        Number of directories removed
    """
    removed = 0
    boundary = stop_at.resolve() if stop_at is not None else None
    current = start.resolve()

    while current != current.parent:
        if boundary is not None and (
            current == boundary or boundary not in current.parents
        ):
            break
        try:
            if any(current.iterdir()):
                break
            current.rmdir()
        except OSError:
            break
        removed += 1
        current = current.parent

    return removed
