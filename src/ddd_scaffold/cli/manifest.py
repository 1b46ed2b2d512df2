"""CLI commands that inspect the generation manifest."""

from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")

from ddd_scaffold.core.errors import ManifestCorruptError
from ddd_scaffold.core.schemas import Manifest
from ddd_scaffold.fs.manifest import ManifestStore

RootOption = Annotated[
    Path,
    typer.Option("--root", help="Project root holding the manifest."),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of a table."),
]


def _load(store: ManifestStore) -> Manifest:
    try:
        return store.load()
    except ManifestCorruptError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def status(root: RootOption, json_output: JsonFlag = False) -> None:
    """List generated files and whether they were edited by hand."""

    store = ManifestStore(root)
    manifest = _load(store)
    modified = set(store.modified_files(manifest))

    rows = [
        {
            "path": record.path,
            "kind": record.kind,
            "hash": record.hash,
            "modified": record.is_modified or record.path in modified,
            "missing": not (store.root / record.path).is_file(),
        }
        for record in sorted(manifest.files, key=lambda r: r.path)
    ]

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "manifest": str(store.path),
                    "lastModified": manifest.last_modified.isoformat(),
                    "files": rows,
                },
                indent=2,
            )
        )
        return

    if not rows:
        typer.echo(f"No generated files recorded in {store.path}")
        return

    for row in rows:
        if row["missing"]:
            flag = "missing "
        elif row["modified"]:
            flag = "modified"
        else:
            flag = "clean   "
        typer.echo(f"{flag}  {row['kind']:<10}  {row['path']}")

    edited = sum(1 for row in rows if row["modified"])
    typer.secho(
        f"{len(rows)} file(s), {edited} edited by hand",
        fg=typer.colors.YELLOW if edited else typer.colors.GREEN,
    )


def entities(root: RootOption) -> None:
    """List scaffolded entities recorded in the manifest."""

    manifest = _load(ManifestStore(root))
    if not manifest.entities:
        typer.echo("No entities registered")
        return

    for entity in sorted(manifest.entities, key=lambda e: (e.module, e.name)):
        typer.echo(
            f"{entity.module}/{entity.name}  "
            f"fields={len(entity.fields)}  files={len(entity.generated_files)}  "
            f"generated={entity.generated_at.isoformat()}"
        )

