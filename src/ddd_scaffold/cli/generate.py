"""CLI commands that plan and apply generation requests."""

from __future__ import annotations

import importlib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

from pydantic import ValidationError

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")

from ddd_scaffold.chains.generation_chain import GenerationChain, GenerationOptions
from ddd_scaffold.core.errors import GenerationAborted, ScaffoldError
from ddd_scaffold.core.plan_summary import plan_to_dict, summarize_plan
from ddd_scaffold.core.schemas import GenerationRequest

EXIT_ERRORS = 1
EXIT_CONFLICTS = 2

STRATEGIES = ("overwrite", "skip", "backup", "prompt")
MODES = ("continue_on_error", "transactional", "dry_run")


RootOption = Annotated[
    Path,
    typer.Option("--root", help="Project root to generate into."),
]
InputOption = Annotated[
    str,
    typer.Option(
        "--input",
        "-i",
        help="GenerationRequest JSON document, or '-' to read stdin.",
    ),
]
StrategyOption = Annotated[
    str,
    typer.Option(
        "--strategy",
        help="How to resolve hand-edited files (overwrite, skip, backup, prompt).",
    ),
]
ForceFlag = Annotated[
    bool,
    typer.Option("--force", help="Overwrite hand-edited files regardless of strategy."),
]
ModeOption = Annotated[
    str,
    typer.Option(
        "--mode",
        help="Execution mode (continue_on_error, transactional, dry_run).",
    ),
]
NameOption = Annotated[
    str,
    typer.Option("--name", help="Name recorded for the transaction."),
]
FailOnConflictFlag = Annotated[
    bool,
    typer.Option(
        "--fail-on-conflict",
        help="Exit with code 2 when any file is left as a conflict.",
    ),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of a text summary."),
]


def _fail(message: str, code: int = EXIT_ERRORS) -> typer.Exit:
    typer.secho(message, err=True, fg=typer.colors.RED)
    return typer.Exit(code=code)


def _check_choice(value: str, choices: Sequence[str], option: str) -> None:
    if value not in choices:
        raise _fail(f"Invalid {option} {value!r}; choose from {', '.join(choices)}")


def _load_request(source: str) -> GenerationRequest:
    """Read a GenerationRequest from a file path or stdin."""
    try:
        if source == "-":
            raw = sys.stdin.read()
        else:
            raw = Path(source).read_text(encoding="utf-8")
    except OSError as exc:
        raise _fail(f"Cannot read request {source}: {exc}") from exc

    try:
        return GenerationRequest.model_validate_json(raw)
    except ValidationError as exc:
        raise _fail(f"Invalid generation request: {exc}") from exc


def plan_generation(
    root: RootOption,
    input_path: InputOption,
    strategy: StrategyOption = "prompt",
    force: ForceFlag = False,
    json_output: JsonFlag = False,
) -> None:
    """Preview what applying a request would change, without writing."""

    _check_choice(strategy, STRATEGIES, "--strategy")
    request = _load_request(input_path)
    opts = GenerationOptions(
        root=str(root),
        mode="dry_run",
        merge_strategy=strategy,  # type: ignore[arg-type]
        force=force,
    )

    try:
        plan = GenerationChain().plan(request, opts)
    except (ScaffoldError, ValueError) as exc:
        raise _fail(str(exc)) from exc

    if json_output:
        typer.echo(json.dumps(plan_to_dict(plan), indent=2, sort_keys=True))
        return

    typer.echo(summarize_plan(plan))


def apply_generation(
    root: RootOption,
    input_path: InputOption,
    strategy: StrategyOption = "prompt",
    force: ForceFlag = False,
    mode: ModeOption = "continue_on_error",
    name: NameOption = "generate",
    fail_on_conflict: FailOnConflictFlag = False,
) -> None:
    """Apply a request to the project inside a transaction."""

    _check_choice(strategy, STRATEGIES, "--strategy")
    _check_choice(mode, MODES, "--mode")
    request = _load_request(input_path)
    opts = GenerationOptions(
        root=str(root),
        mode=mode,  # type: ignore[arg-type]
        merge_strategy=strategy,  # type: ignore[arg-type]
        force=force,
        transaction_name=name,
    )

    try:
        report = GenerationChain().generate(request, opts)
    except GenerationAborted as exc:
        raise _fail(str(exc)) from exc
    except (ScaffoldError, ValueError, OSError) as exc:
        raise _fail(f"Generation failed: {exc}") from exc

    if report.status == "rolled_back":
        raise _fail(
            f"Transaction {report.transaction_id} rolled back: "
            f"{len(report.result.errors) if report.result else 0} file(s) failed"
        )

    result = report.result
    if result is not None:
        typer.secho(
            f"created: {result.created}  updated: {result.updated}  "
            f"skipped: {result.skipped}  conflicts: {result.conflicts}",
            fg=typer.colors.GREEN if result.success else typer.colors.YELLOW,
        )
        for error in result.errors:
            typer.secho(error, err=True, fg=typer.colors.RED)

    for entity in report.entities:
        typer.echo(f"registered entity {entity}")

    if result is not None and result.errors:
        raise typer.Exit(code=EXIT_ERRORS)
    if fail_on_conflict and report.plan.has_conflicts:
        typer.secho(
            f"{len(report.plan.conflict)} conflicting file(s) left untouched",
            err=True,
            fg=typer.colors.YELLOW,
        )
        raise typer.Exit(code=EXIT_CONFLICTS)

