"""CLI commands for multi-file recovery points."""

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

from ddd_scaffold.fs.recovery import RecoveryStore
from ddd_scaffold.fs.transaction import TransactionManager

app: TyperType = typer.Typer(help="Snapshot and restore groups of project files.")

RootOption = Annotated[
    Path,
    typer.Option("--root", help="Project root holding the state directory."),
]
PointArgument = Annotated[str, typer.Argument(help="Recovery point id.")]
NameOption = Annotated[
    str,
    typer.Option("--name", help="Label stored with the recovery point."),
]
PatternOption = Annotated[
    list[str],
    typer.Option(
        "--pattern",
        "-p",
        help="Glob over project-relative paths; repeat for several.",
    ),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of text."),
]


def create_point(
    root: RootOption, pattern: PatternOption, name: NameOption = "manual"
) -> None:
    """Capture every file matching the patterns."""

    try:
        point = RecoveryStore(root).create(name, pattern)
    except (OSError, ValueError) as exc:
        typer.secho(
            f"Cannot create recovery point: {exc}", err=True, fg=typer.colors.RED
        )
        raise typer.Exit(code=1) from exc

    typer.secho(
        f"Created recovery point {point.id} '{point.name}' "
        f"({len(point.files)} file(s))",
        fg=typer.colors.GREEN,
    )


def list_points(root: RootOption, json_output: JsonFlag = False) -> None:
    """List recovery points, oldest first."""

    points = RecoveryStore(root).list_points()

    if json_output:
        payload = [
            point.model_dump(mode="json", by_alias=True, exclude={"files"})
            | {"files": point.paths()}
            for point in points
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not points:
        typer.echo("No recovery points")
        return

    for point in points:
        typer.echo(
            f"{point.id}  {point.created_at.isoformat()}  "
            f"{len(point.files)} file(s)  {point.name}"
        )


def restore_point(root: RootOption, point_id: PointArgument) -> None:
    """Restore every file of a recovery point, all or nothing."""

    store = RecoveryStore(root)
    transactions = TransactionManager(store.root, journal=True)
    transactions.begin(f"recover {point_id}")

    try:
        result = store.restore(point_id, transactions)
    except KeyError as exc:
        transactions.rollback("no such recovery point")
        typer.secho(f"No recovery point {point_id}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        transactions.rollback(str(exc))
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    if not result.success:
        rollback = transactions.rollback("; ".join(result.errors))
        for error in result.errors:
            typer.secho(error, err=True, fg=typer.colors.RED)
        for path in rollback.failed_paths:
            typer.secho(f"NOT RESTORED {path} (fix manually)", err=True)
        typer.secho(
            f"Restore of {point_id} rolled back: "
            f"{len(result.failed_paths)} file(s) failed",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)

    transactions.commit()
    typer.secho(
        f"Restored {len(result.restored)} file(s) from {point_id} "
        f"({len(result.unchanged)} unchanged)",
        fg=typer.colors.GREEN,
    )


def delete_point(root: RootOption, point_id: PointArgument) -> None:
    """Delete a recovery point."""

    if not RecoveryStore(root).delete(point_id):
        typer.secho(f"No recovery point {point_id}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.secho(f"Deleted {point_id}", fg=typer.colors.GREEN)


app.command("create")(create_point)
app.command("list")(list_points)
app.command("restore")(restore_point)
app.command("delete")(delete_point)
