"""Timestamped backup history for generated files.

Backups live under ``<state-dir>/history`` mirroring the project layout, one
file per backup named ``<file>.<timestamp>.bak``. They are independent of
transaction rollback: a rolled-back run keeps the backups it took.
"""

import shutil
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath

from ddd_scaffold.core.constants import DEFAULT_KEEP_BACKUPS
from ddd_scaffold.fs.fs_ops import write_file
from ddd_scaffold.fs.paths import (
    BACKUP_NAME_PATTERN,
    history_dir,
    next_backup_timestamp,
    normalize_relative_path,
    parse_backup_timestamp,
    prune_empty_dirs,
    resolve_project_path,
)
from ddd_scaffold.fs.transaction import TransactionManager
from ddd_scaffold.utils.debug import debug


@dataclass(frozen=True)
class BackupEntry:
    """A single backup of a project file.

    Attributes:
        path: Project-relative path of the original file
        timestamp: Fixed-width timestamp embedded in the backup name
        backup_path: Location of the backup file
    """

    path: str
    timestamp: str
    backup_path: Path

    @property
    def created_at(self) -> datetime:
        return parse_backup_timestamp(self.timestamp)


class BackupStore:
    """Backup, restore, and prune copies of project files."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    @property
    def history_dir(self) -> Path:
        return history_dir(self.root)

    def backup(self, path: str) -> Path | None:
        """Copy the current bytes of ``path`` into the history directory.

        Args:
            path: Project-relative path of the file to preserve

        Returns:
            Location of the new backup, or None if the file does not exist

        Raises:
            OSError: If the history directory or the copy cannot be written
        """
        relative = normalize_relative_path(path)
        source = resolve_project_path(self.root, relative)
        if not source.is_file():
            debug(f"Nothing to back up, {relative} does not exist")
            return None

        posix = PurePosixPath(relative)
        target_dir = self.history_dir.joinpath(*posix.parent.parts)
        target_dir.mkdir(parents=True, exist_ok=True)

        timestamp = next_backup_timestamp(target_dir, posix.name)
        backup_path = target_dir / f"{posix.name}.{timestamp}.bak"
        shutil.copy2(source, backup_path)
        debug(f"Backed up {relative} to {backup_path}")

        return backup_path

    def list_backups(self, path: str | None = None) -> list[BackupEntry]:
        """List backups, oldest first.

        Args:
            path: Restrict to backups of this project-relative path (optional)
        """
        if not self.history_dir.is_dir():
            return []

        if path is not None:
            posix = PurePosixPath(normalize_relative_path(path))
            search_dir = self.history_dir.joinpath(*posix.parent.parts)
            candidates = (
                sorted(search_dir.glob(f"{_glob_escape(posix.name)}.*.bak"))
                if search_dir.is_dir()
                else []
            )
        else:
            candidates = sorted(self.history_dir.rglob("*.bak"))

        entries: list[BackupEntry] = []
        for candidate in candidates:
            if not candidate.is_file():
                continue
            match = BACKUP_NAME_PATTERN.match(candidate.name)
            if match is None:
                continue

            parent = candidate.parent.relative_to(self.history_dir)
            original = (PurePosixPath(*parent.parts) / match["name"]).as_posix()
            if path is not None and original != normalize_relative_path(path):
                continue

            entries.append(
                BackupEntry(
                    path=original,
                    timestamp=match["timestamp"],
                    backup_path=candidate,
                )
            )

        entries.sort(key=lambda entry: (entry.path, entry.timestamp))
        return entries

    def restore(
        self,
        path: str,
        timestamp: str | None = None,
        transactions: TransactionManager | None = None,
    ) -> bool:
        """Restore ``path`` from a backup.

        Args:
            path: Project-relative path to restore
            timestamp: Exact backup to restore; the most recent one if omitted
            transactions: Manager to record the overwrite with (optional)

        Returns:
            True if a backup was restored, False if no matching backup exists
        """
        entries = self.list_backups(path)
        if timestamp is not None:
            entries = [entry for entry in entries if entry.timestamp == timestamp]
        if not entries:
            return False

        chosen = entries[-1]
        target = resolve_project_path(self.root, chosen.path)
        write_file(target, chosen.backup_path.read_bytes(), transactions)
        debug(f"Restored {chosen.path} from {chosen.backup_path}")

        return True

    def cleanup(self, keep_last: int = DEFAULT_KEEP_BACKUPS) -> int:
        """Delete all but the ``keep_last`` newest backups of every file.

        Live project files are never touched.

        Returns:
            Number of backups deleted
        """
        if keep_last < 0:
            raise ValueError("keep_last must not be negative")

        by_path: dict[str, list[BackupEntry]] = defaultdict(list)
        for entry in self.list_backups():
            by_path[entry.path].append(entry)

        deleted = 0
        for entries in by_path.values():
            newest_first = sorted(entries, key=lambda e: e.timestamp, reverse=True)
            for entry in newest_first[keep_last:]:
                entry.backup_path.unlink()
                prune_empty_dirs(entry.backup_path.parent, stop_at=self.history_dir)
                deleted += 1

        debug(f"Backup cleanup removed {deleted} file(s)")
        return deleted


def _glob_escape(name: str) -> str:
    return "".join(f"[{char}]" if char in "*?[" else char for char in name)
