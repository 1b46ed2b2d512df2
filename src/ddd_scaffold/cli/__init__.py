"""CLI entrypoints for ddd-scaffold."""

import importlib
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from ddd_scaffold.cli.generate import apply_generation, plan_generation
from ddd_scaffold.cli.history import app as backups_app
from ddd_scaffold.cli.history import transactions
from ddd_scaffold.cli.manifest import entities, status
from ddd_scaffold.cli.recovery import app as recovery_app

app: TyperType = typer.Typer(
    help="Idempotent, transactional file generation for DDD projects.",
    no_args_is_help=True,
)

app.command("plan")(plan_generation)
app.command("apply")(apply_generation)
app.command("status")(status)
app.command("entities")(entities)
app.command("transactions")(transactions)
app.add_typer(backups_app, name="backups")
app.add_typer(recovery_app, name="recovery")


def main() -> None:
    app()


__all__ = ["app", "backups_app", "main", "recovery_app"]
