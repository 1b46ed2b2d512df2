"""Transaction journal writer.

This module mirrors every file transaction to a JSONL log under the project's
state directory, so a run's mutations can be inspected after the process
that made them has exited.
"""

import json
import os
import platform
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ddd_scaffold.core.constants import JOURNAL_SCHEMA_VERSION
from ddd_scaffold.fs.paths import journal_dir
from ddd_scaffold.utils.debug import debug


class TransactionJournal:
    """Writes transaction journals in JSONL format.

    Each journal file contains:
    - Header line with transaction metadata (type: "header")
    - One JSON object per recorded file operation (type: "operation")
    - A closing line with the final status (type: "status")

    File contents are never journaled, only their size and hash.
    """

    def __init__(self, root: Path, transaction_id: str, name: str) -> None:
        """Initialize journal writer.

        Args:
            root: Project root the transaction operates on
            transaction_id: Identifier of the transaction being journaled
            name: Human-readable transaction name

        Raises:
            OSError: If the journal directory cannot be created or written
        """
        self.root = root.resolve()
        self.transaction_id = transaction_id
        self.name = name
        self._journal_path: Path | None = None
        self._journal_file: Any = None
        self._header_written = False

        self._ensure_journal_directory()

    @property
    def path(self) -> Path | None:
        return self._journal_path

    def _ensure_journal_directory(self) -> None:
        """Ensure journal directory exists and is writable."""
        target_dir = journal_dir(self.root)

        try:
            target_dir.mkdir(parents=True, exist_ok=True)

            # Test write access
            test_file = target_dir / f".test_{uuid.uuid4().hex}"
            test_file.write_text("test")
            test_file.unlink()

        except OSError as e:
            raise OSError(
                f"Cannot create transaction journal directory {target_dir}: {e}. "
                "Ensure the project directory is writable."
            ) from e

        self._journal_path = target_dir / f"{self.transaction_id}.jsonl"
        debug(f"Transaction journal will be written to: {self._journal_path}")

    def write_header(self, started_at: datetime | None = None) -> None:
        """Write journal header with transaction metadata."""
        if self._header_written:
            return

        header = {
            "type": "header",
            "schema_version": JOURNAL_SCHEMA_VERSION,
            "transaction_id": self.transaction_id,
            "name": self.name,
            "started_at": (started_at or datetime.now(UTC)).isoformat(),
            "root": str(self.root),
            "system": {
                "os": platform.system(),
                "python": platform.python_version(),
            },
        }

        self._write_line(header)
        self._header_written = True
        debug(f"Wrote journal header for transaction {self.transaction_id}")

    def append(self, entry: dict[str, Any]) -> None:
        """Append an operation entry to the journal.

        Args:
            entry: Operation data to append
        """
        if not self._header_written:
            self.write_header()

        self._write_line({"type": "operation", **entry})
        debug("Appended journal entry", op=entry.get("op"), path=entry.get("path"))

    def finish(self, status: str, **details: Any) -> None:
        """Write the closing status line."""
        if not self._header_written:
            self.write_header()

        self._write_line(
            {
                "type": "status",
                "status": status,
                "ts": datetime.now(UTC).isoformat(),
                **details,
            }
        )

    def _write_line(self, data: dict[str, Any]) -> None:
        """Write a JSON line to the journal file."""
        if self._journal_file is None:
            if self._journal_path is None:
                raise RuntimeError("Journal path not set")
            self._journal_file = open(self._journal_path, "a", encoding="utf-8")

        json_line = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        self._journal_file.write(json_line + "\n")
        self._journal_file.flush()
        os.fsync(self._journal_file.fileno())

    def close(self) -> None:
        """Close the journal file."""
        if self._journal_file is not None:
            self._journal_file.close()
            self._journal_file = None
        debug(f"Closed journal file: {self._journal_path}")

    def __enter__(self) -> "TransactionJournal":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()


def read_journal(path: Path) -> dict[str, Any]:
    """Read a journal file into a summary dictionary.

    Returns:
        ``{"header": {...}, "operations": [...], "status": {...} | None}``.
        A journal without a status line belongs to a transaction that never
        finished (the process died mid-run).
    """
    header: dict[str, Any] = {}
    operations: list[dict[str, Any]] = []
    status: dict[str, Any] | None = None

    with open(path, encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            entry = json.loads(line)
            entry_type = entry.get("type")
            if entry_type == "header":
                header = entry
            elif entry_type == "operation":
                operations.append(entry)
            elif entry_type == "status":
                status = entry

    return {"header": header, "operations": operations, "status": status}


def list_journals(root: Path) -> list[dict[str, Any]]:
    """Read every journal for a project, oldest first."""
    target_dir = journal_dir(root)
    if not target_dir.is_dir():
        return []

    journals = [read_journal(path) for path in target_dir.glob("*.jsonl")]
    journals.sort(key=lambda j: j["header"].get("started_at", ""))
    return journals
