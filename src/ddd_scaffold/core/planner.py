"""Generation planner: classify desired outputs against disk and manifest."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ddd_scaffold.core.hashing import content_hash, file_hash
from ddd_scaffold.core.schemas import (
    DesiredFile,
    FileKind,
    Manifest,
    MergeStrategy,
    Operation,
    Plan,
)
from ddd_scaffold.fs.paths import resolve_project_path

DesiredInput = DesiredFile | tuple[str, str] | tuple[str, str, FileKind]

REASON_NEW = "new file"
REASON_UNCHANGED = "content unchanged"
REASON_SAFE_UPDATE = "unchanged since last generation"
REASON_FORCED = "forced overwrite"
REASON_MODIFIED = "manually modified"
REASON_OVERWRITE = "manually modified, overwrite requested"
REASON_BACKUP = "manually modified, backing up before overwrite"
REASON_CONFLICT = "file has been manually modified"


@dataclass(frozen=True)
class PlanOptions:
    """Options for plan classification.

    Attributes:
        merge_strategy: How to resolve hand-edited files
            (overwrite, skip, backup, prompt)
        force: Overwrite hand-edited files regardless of strategy
    """

    merge_strategy: MergeStrategy = "prompt"
    force: bool = False


def coerce_desired(item: DesiredInput) -> DesiredFile:
    """Accept a DesiredFile or a ``(path, content[, kind])`` tuple."""
    if isinstance(item, DesiredFile):
        return item
    if len(item) == 2:
        path, content = item  # type: ignore[misc]
        return DesiredFile(path=path, content=content)
    path, content, kind = item  # type: ignore[misc]
    return DesiredFile(path=path, content=content, kind=kind)


class GenerationPlanner:
    """Decides, per file, whether a generation output is written or held back.

    A file on disk is compared against both the desired content and the hash
    recorded when it was last generated. Matching the desired content means
    nothing to do; matching the record means nobody touched it since, so it
    is safe to overwrite; matching neither means a human edited it.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def plan(
        self,
        desired: Iterable[DesiredInput],
        manifest: Manifest,
        options: PlanOptions | None = None,
    ) -> Plan:
        """Classify every desired output.

        Args:
            desired: Rendered outputs to place in the project
            manifest: Manifest describing what was generated before
            options: Merge strategy and force flag

        Returns:
            Immutable Plan with create, update, skip and conflict buckets

        Raises:
            ValueError: If two outputs target the same path, or a path is
                not inside the project
        """
        opts = options or PlanOptions()
        buckets: dict[str, list[Operation]] = {
            "create": [],
            "update": [],
            "skip": [],
            "conflict": [],
        }
        seen: set[str] = set()

        for item in desired:
            desired_file = coerce_desired(item)
            if desired_file.path in seen:
                raise ValueError(f"Duplicate output path: {desired_file.path}")
            seen.add(desired_file.path)

            operation = self.classify(desired_file, manifest, opts)
            bucket = "update" if operation.action == "backup" else operation.action
            buckets[bucket].append(operation)

        return Plan(
            create=tuple(buckets["create"]),
            update=tuple(buckets["update"]),
            skip=tuple(buckets["skip"]),
            conflict=tuple(buckets["conflict"]),
        )

    def classify(
        self,
        desired: DesiredFile,
        manifest: Manifest,
        options: PlanOptions,
    ) -> Operation:
        """Classify a single output. See the class docstring for the rules."""
        base = {
            "path": desired.path,
            "kind": desired.kind or "other",
            "entity_name": desired.entity_name,
            "module_name": desired.module_name,
        }
        new_hash = content_hash(desired.content)

        existing_hash = file_hash(resolve_project_path(self.root, desired.path))
        if existing_hash is None:
            return Operation(
                **base,
                action="create",
                reason=REASON_NEW,
                content=desired.content,
                new_hash=new_hash,
            )

        if existing_hash == new_hash:
            return Operation(
                **base,
                action="skip",
                reason=REASON_UNCHANGED,
                existing_hash=existing_hash,
                new_hash=new_hash,
            )

        record = manifest.get_file(desired.path)
        if record is not None and existing_hash == record.hash:
            return Operation(
                **base,
                action="update",
                reason=REASON_SAFE_UPDATE,
                content=desired.content,
                existing_hash=existing_hash,
                new_hash=new_hash,
            )

        if options.force:
            return Operation(
                **base,
                action="update",
                reason=REASON_FORCED,
                content=desired.content,
                existing_hash=existing_hash,
                new_hash=new_hash,
                manually_modified=True,
            )

        # Differs from both the desired content and the last generation.
        hand_edited = {
            **base,
            "content": desired.content,
            "existing_hash": existing_hash,
            "new_hash": new_hash,
            "manually_modified": True,
        }
        strategy = options.merge_strategy
        if strategy == "overwrite":
            return Operation(**hand_edited, action="update", reason=REASON_OVERWRITE)
        if strategy == "skip":
            return Operation(**hand_edited, action="skip", reason=REASON_MODIFIED)
        if strategy == "backup":
            return Operation(**hand_edited, action="backup", reason=REASON_BACKUP)
        return Operation(**hand_edited, action="conflict", reason=REASON_CONFLICT)
