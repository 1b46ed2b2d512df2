"""Generation manifest persistence.

The manifest is the durable source of truth across CLI invocations: one JSON
document per project recording every generated file (with the hash of what
was written) and every scaffolded entity.
"""

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from ddd_scaffold.core.errors import ManifestCorruptError
from ddd_scaffold.core.hashing import content_hash, file_hash
from ddd_scaffold.core.schemas import EntityRecord, Manifest
from ddd_scaffold.fs.paths import (
    manifest_path,
    normalize_relative_path,
    resolve_project_path,
)
from ddd_scaffold.utils.debug import debug


def create_empty_manifest() -> Manifest:
    """Create a fresh manifest with no files or entities."""
    return Manifest()


class ManifestStore:
    """Loads and saves the generation manifest of one project."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    @property
    def path(self) -> Path:
        return manifest_path(self.root)

    def load(self) -> Manifest:
        """Read the persisted manifest.

        Returns:
            The stored manifest, or a fresh one if none exists yet

        Raises:
            ManifestCorruptError: If the file exists but cannot be parsed
        """
        target = self.path
        if not target.is_file():
            debug(f"No manifest at {target}, starting fresh")
            return create_empty_manifest()

        try:
            raw = target.read_text(encoding="utf-8")
            return Manifest.model_validate_json(raw)
        except ValidationError as e:
            raise ManifestCorruptError(str(target), str(e)) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestCorruptError(str(target), str(e)) from e

    def save(self, manifest: Manifest) -> Path:
        """Write the manifest atomically, stamping ``last_modified``.

        The document is written to a temporary file next to the target and
        renamed over it, so a crash never leaves a half-written manifest.

        Raises:
            OSError: If the state directory or the file cannot be written
        """
        target = self.path
        manifest.last_modified = datetime.now(UTC)
        payload = manifest.model_dump(mode="json", by_alias=True, exclude_none=True)
        text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=".manifest-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise OSError(f"Cannot write generation manifest {target}: {e}") from e

        debug(f"Saved manifest with {len(manifest.files)} file(s) to {target}")
        return target

    def is_file_modified(self, path: str, manifest: Manifest) -> bool:
        """Check whether a generated file was edited since it was written.

        Returns False when there is no record or no file: there is nothing
        to compare against.
        """
        relative = normalize_relative_path(path)
        record = manifest.get_file(relative)
        if record is None:
            return False

        current = file_hash(resolve_project_path(self.root, relative))
        if current is None:
            return False

        return current != record.hash

    def modified_files(self, manifest: Manifest) -> list[str]:
        """Every recorded path whose disk content no longer matches its record."""
        return [
            record.path
            for record in manifest.files
            if self.is_file_modified(record.path, manifest)
        ]


def _entity_hash(
    name: str,
    module: str,
    fields: list[str],
    relations: list[str],
    generated_files: list[str],
) -> str:
    return content_hash(
        json.dumps(
            {
                "name": name,
                "module": module,
                "fields": fields,
                "relations": relations,
                "generated_files": generated_files,
            },
            sort_keys=True,
        )
    )


def register_entity(
    manifest: Manifest,
    name: str,
    module: str,
    fields: list[str] | None = None,
    relations: list[str] | None = None,
    generated_files: list[str] | None = None,
) -> EntityRecord:
    """Insert or replace the record for entity ``name`` in ``module``.

    Re-registering an entity replaces its record, it never duplicates it.
    """
    fields = list(fields or [])
    relations = list(relations or [])
    files = [normalize_relative_path(p) for p in generated_files or []]

    record = EntityRecord(
        name=name,
        module=module,
        fields=fields,
        relations=relations,
        generated_files=files,
        hash=_entity_hash(name, module, fields, relations, files),
        generated_at=datetime.now(UTC),
    )

    for index, existing in enumerate(manifest.entities):
        if existing.name == name and existing.module == module:
            manifest.entities[index] = record
            break
    else:
        manifest.entities.append(record)

    return record


def was_entity_generated(manifest: Manifest, name: str, module: str) -> bool:
    return manifest.find_entity(name, module) is not None


def get_entity(manifest: Manifest, name: str, module: str) -> EntityRecord | None:
    return manifest.find_entity(name, module)
