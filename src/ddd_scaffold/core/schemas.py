"""Pydantic schemas for the plan/execute pipeline.

These schemas define the data structures shared by the planner, executor and
manifest store:
- DesiredFile / GenerationRequest: Rendered outputs handed to the planner
- FileRecord / EntityRecord / Manifest: Durable record of generated files
- Operation / Plan: Classified, not-yet-applied file mutations
- RecoveryFile / RecoveryPoint: Index of a multi-file snapshot

Manifest models serialize with camelCase aliases so the manifest file stays
readable and diffable. All schemas use Pydantic v2 for validation and
serialization.
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ddd_scaffold.core.constants import (
    GENERATOR_NAME,
    KIND_MARKERS,
    MANIFEST_VERSION,
)
from ddd_scaffold.core.errors import ConflictError
from ddd_scaffold.fs.paths import normalize_relative_path

FileKind = Literal[
    "entity",
    "dto",
    "service",
    "controller",
    "repository",
    "module",
    "test",
    "other",
]
MergeStrategy = Literal["overwrite", "skip", "backup", "prompt"]
OperationAction = Literal["create", "update", "skip", "conflict", "backup"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def detect_file_kind(path: str) -> FileKind:
    """Infer a file kind from naming conventions (``user.entity.ts``)."""
    name = path.rsplit("/", 1)[-1]
    for marker, kind in KIND_MARKERS:
        if marker in name:
            return kind  # type: ignore[return-value]
    return "other"


class _CamelModel(BaseModel):
    """Base for models persisted or read as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DesiredFile(_CamelModel):
    """A rendered output the caller wants present in the project.

    Attributes:
        path: Project-relative POSIX path
        content: Full text the file should contain
        kind: File kind; inferred from the file name when omitted
        entity_name: Domain entity this file belongs to (optional)
        module_name: Module this file belongs to (optional)
    """

    path: str
    content: str
    kind: FileKind | None = None
    entity_name: str | None = None
    module_name: str | None = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Normalize to a clean relative POSIX path."""
        return normalize_relative_path(v)

    @model_validator(mode="after")
    def fill_kind(self) -> "DesiredFile":
        if self.kind is None:
            self.kind = detect_file_kind(self.path)
        return self


class EntitySpec(_CamelModel):
    """Description of a scaffolded domain concept, as supplied by the caller."""

    name: str
    module: str
    fields: list[str] = Field(default_factory=list)
    relations: list[str] = Field(default_factory=list)
    generated_files: list[str] = Field(default_factory=list)

    @field_validator("generated_files")
    @classmethod
    def validate_generated_files(cls, v: list[str]) -> list[str]:
        return [normalize_relative_path(p) for p in v]


class GenerationRequest(_CamelModel):
    """Everything one generation run wants written, plus entity bookkeeping.

    Attributes:
        files: Rendered outputs, in the order they should be processed
        entities: Entities to register once their files are recorded
    """

    files: list[DesiredFile]
    entities: list[EntitySpec] = Field(default_factory=list)


class FileRecord(_CamelModel):
    """Manifest entry for a single generated path.

    Attributes:
        path: Project-relative POSIX path
        kind: File kind
        entity_name: Owning entity (optional)
        module_name: Owning module (optional)
        hash: Content address of the last generated content
        generated_at: When the path was first written
        modified_at: When the path was last rewritten by the generator
        is_modified: True if a later run observed a hand edit
    """

    path: str
    kind: FileKind = "other"
    entity_name: str | None = None
    module_name: str | None = None
    hash: str
    generated_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime | None = None
    is_modified: bool = False


class EntityRecord(_CamelModel):
    """Manifest entry recording that a named domain concept was scaffolded."""

    name: str
    module: str
    fields: list[str] = Field(default_factory=list)
    relations: list[str] = Field(default_factory=list)
    generated_files: list[str] = Field(default_factory=list)
    hash: str
    generated_at: datetime = Field(default_factory=_utcnow)


class Manifest(_CamelModel):
    """Durable record of every file and entity a generator run produced.

    ``checksums`` is a derived index of ``files``: it is rebuilt on
    validation and kept in lock-step by ``record_file``. Mutate file records
    only through ``record_file``.
    """

    version: str = MANIFEST_VERSION
    generator: str = GENERATOR_NAME
    generated_at: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)
    entities: list[EntityRecord] = Field(default_factory=list)
    files: list[FileRecord] = Field(default_factory=list)
    checksums: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def sync_checksums(self) -> "Manifest":
        self._rebuild_checksums()
        return self

    def _rebuild_checksums(self) -> None:
        self.checksums = {
            record.path: record.hash
            for record in sorted(self.files, key=lambda r: r.path)
        }

    def get_file(self, path: str) -> FileRecord | None:
        """Return the record for ``path`` if one exists."""
        for record in self.files:
            if record.path == path:
                return record
        return None

    def record_file(self, record: FileRecord) -> None:
        """Insert or replace the record for ``record.path``."""
        for index, existing in enumerate(self.files):
            if existing.path == record.path:
                self.files[index] = record
                break
        else:
            self.files.append(record)
        self._rebuild_checksums()

    def find_entity(self, name: str, module: str) -> EntityRecord | None:
        for entity in self.entities:
            if entity.name == name and entity.module == module:
                return entity
        return None


class Operation(_CamelModel):
    """A single proposed file mutation.

    Attributes:
        path: Project-relative POSIX path
        action: create, update, skip, conflict, or backup (update after backup)
        kind: File kind carried through to the manifest record
        reason: Human-readable explanation for the classification
        content: Desired content (absent for pure skips)
        existing_hash: Hash of the file currently on disk
        new_hash: Hash of the desired content
        entity_name: Owning entity (optional)
        module_name: Owning module (optional)
        manually_modified: True if the file on disk was hand-edited
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    path: str
    action: OperationAction
    kind: FileKind = "other"
    reason: str | None = None
    content: str | None = Field(default=None, repr=False)
    existing_hash: str | None = None
    new_hash: str | None = None
    entity_name: str | None = None
    module_name: str | None = None
    manually_modified: bool = False


class Plan(BaseModel):
    """Classification result for one generation run. Immutable."""

    model_config = ConfigDict(frozen=True)

    create: tuple[Operation, ...] = ()
    update: tuple[Operation, ...] = ()
    skip: tuple[Operation, ...] = ()
    conflict: tuple[Operation, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflict)

    @property
    def total(self) -> int:
        return len(self.create) + len(self.update) + len(self.skip) + len(
            self.conflict
        )

    @property
    def is_noop(self) -> bool:
        """True when executing the plan would write nothing."""
        return not self.create and not self.update

    def operations(self) -> tuple[Operation, ...]:
        """All operations in execution order, followed by skips and conflicts."""
        return self.create + self.update + self.skip + self.conflict

    def raise_for_conflicts(self) -> None:
        """Raise ConflictError if any file was classified as a conflict."""
        if self.conflict:
            raise ConflictError(
                [op.path for op in self.conflict],
                {op.path: op.reason or "" for op in self.conflict},
            )


class RecoveryFile(_CamelModel):
    """One file captured by a recovery point.

    Attributes:
        path: Project-relative POSIX path
        hash: Content address of the captured bytes
        size: Size of the captured bytes
    """

    path: str
    hash: str
    size: int = 0


class RecoveryPoint(_CamelModel):
    """Snapshot of every project file matching a set of patterns.

    Taken before a risky batch of changes so all of them can be put back at
    once. The captured bytes live next to the index under the state directory.
    """

    id: str
    name: str
    created_at: datetime = Field(default_factory=_utcnow)
    patterns: list[str] = Field(default_factory=list)
    files: list[RecoveryFile] = Field(default_factory=list)

    def paths(self) -> list[str]:
        return [entry.path for entry in self.files]
