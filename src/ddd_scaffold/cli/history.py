"""CLI commands for backup history and transaction journals."""

from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from ddd_scaffold.core.constants import DEFAULT_KEEP_BACKUPS
from ddd_scaffold.fs.backups import BackupStore
from ddd_scaffold.fs.journal import list_journals
from ddd_scaffold.fs.transaction import TransactionManager

app: TyperType = typer.Typer(help="Manage backups of hand-edited files.")

RootOption = Annotated[
    Path,
    typer.Option("--root", help="Project root holding the state directory."),
]
PathOption = Annotated[
    str | None,
    typer.Option("--path", help="Only backups of this project-relative path."),
]
TimestampOption = Annotated[
    str | None,
    typer.Option("--timestamp", help="Restore this backup instead of the newest."),
]
KeepOption = Annotated[
    int,
    typer.Option("--keep", min=0, help="Backups to keep per file."),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of text."),
]


def list_backups(
    root: RootOption, path: PathOption = None, json_output: JsonFlag = False
) -> None:
    """List backups, oldest first."""

    try:
        entries = BackupStore(root).list_backups(path)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    if json_output:
        payload = [
            {
                "path": entry.path,
                "timestamp": entry.timestamp,
                "backup": str(entry.backup_path),
            }
            for entry in entries
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not entries:
        typer.echo("No backups found")
        return

    for entry in entries:
        typer.echo(f"{entry.timestamp}  {entry.path}")


def restore_backup(
    root: RootOption,
    path: Annotated[str, typer.Argument(help="Project-relative path to restore.")],
    timestamp: TimestampOption = None,
) -> None:
    """Restore a file from its backup history."""

    store = BackupStore(root)
    transactions = TransactionManager(store.root, journal=True)
    transactions.begin(f"restore {path}")

    try:
        restored = store.restore(path, timestamp, transactions)
    except (OSError, ValueError) as exc:
        transactions.rollback(str(exc))
        typer.secho(f"Failed to restore {path}: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    if not restored:
        transactions.rollback("no matching backup")
        typer.secho(f"No backup found for {path}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    transactions.commit()
    typer.secho(f"Restored {path}", fg=typer.colors.GREEN)


def cleanup_backups(root: RootOption, keep: KeepOption = DEFAULT_KEEP_BACKUPS) -> None:
    """Delete all but the newest backups of every file."""

    deleted = BackupStore(root).cleanup(keep_last=keep)
    typer.secho(f"Removed {deleted} backup(s)", fg=typer.colors.GREEN)


def transactions(root: RootOption, json_output: JsonFlag = False) -> None:
    """Show the transaction journal history of a project."""

    journals = list_journals(root.resolve())

    if json_output:
        typer.echo(json.dumps(journals, indent=2))
        return

    if not journals:
        typer.echo("No transactions recorded")
        return

    for journal in journals:
        header = journal["header"]
        status = journal["status"]
        state = status["status"] if status else "incomplete"
        typer.echo(
            f"{header.get('transaction_id', '?')}  {state:<11}  "
            f"{len(journal['operations'])} op(s)  "
            f"{header.get('started_at', '')}  {header.get('name', '')}"
        )


app.command("list")(list_backups)
app.command("restore")(restore_backup)
app.command("cleanup")(cleanup_backups)
