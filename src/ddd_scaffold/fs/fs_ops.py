"""Transaction-aware file writes.

Every helper records the mutation with the given TransactionManager *before*
touching the disk, so a write that fails halfway is still reverted by a
rollback.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ddd_scaffold.fs.paths import ensure_parent_dir, missing_parent_dirs
from ddd_scaffold.fs.transaction import TransactionManager
from ddd_scaffold.utils.debug import debug


@dataclass
class WriteOutcome:
    """Result of a single file write."""

    path: Path
    op: Literal["create", "modify", "delete", "noop"]
    size: int = 0


def write_file(
    path: Path,
    content: bytes | str,
    transactions: TransactionManager | None = None,
) -> WriteOutcome:
    """Create or overwrite ``path`` with ``content``.

    Text is written as UTF-8 bytes without newline translation, so the bytes
    on disk hash exactly like the rendered content.

    Args:
        path: Absolute destination path
        content: New file content
        transactions: Manager to record the mutation with (optional)

    Returns:
        WriteOutcome describing whether the file was created or modified

    Raises:
        OSError: If the file or its parent directory cannot be written
    """
    data = content.encode("utf-8") if isinstance(content, str) else content

    if path.exists():
        original = path.read_bytes()
        if transactions is not None:
            transactions.record_modify(path, original, data)
        op: Literal["create", "modify"] = "modify"
    else:
        if transactions is not None:
            transactions.record_create(
                path, data, created_dirs=missing_parent_dirs(path)
            )
        op = "create"

    ensure_parent_dir(path)
    path.write_bytes(data)
    debug(f"{op}: {path} ({len(data)} bytes)")

    return WriteOutcome(path=path, op=op, size=len(data))


def delete_file(
    path: Path,
    transactions: TransactionManager | None = None,
) -> WriteOutcome:
    """Delete ``path`` if it exists, keeping its bytes for rollback."""
    if not path.exists():
        return WriteOutcome(path=path, op="noop")

    original = path.read_bytes()
    if transactions is not None:
        transactions.record_delete(path, original)

    path.unlink()
    debug(f"delete: {path}")

    return WriteOutcome(path=path, op="delete", size=len(original))
