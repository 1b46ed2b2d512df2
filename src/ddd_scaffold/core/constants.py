"""Core constants for ddd-scaffold.

This module defines constants used throughout the application:
- Layout of the state directory kept inside a target project
- Manifest schema identifiers and content-hash width
- File kinds recognised by the planner and their filename markers
- Defaults for plan summaries and backup retention
"""

# ============================================================================
# State Directory Layout
# ============================================================================

#: Directory (relative to the project root) holding all generator state
STATE_DIR_NAME: str = ".ddd"

#: Environment variable overriding STATE_DIR_NAME
STATE_DIR_ENV: str = "DDD_SCAFFOLD_STATE_DIR"

#: Environment variable enabling [DEBUG] trace output on stdout
DEBUG_ENV: str = "DDD_SCAFFOLD_DEBUG"

#: Manifest file name inside the state directory
MANIFEST_FILENAME: str = "generation-manifest.json"

#: Backup history directory inside the state directory
HISTORY_DIRNAME: str = "history"

#: Transaction journal directory inside the state directory
JOURNAL_DIRNAME: str = "transactions"

#: Recovery point directory inside the state directory
RECOVERY_DIRNAME: str = "recovery"

#: Directory names never descended into when taking a recovery point.
#: Hidden directories (the state directory included) are always skipped.
RECOVERY_SKIP_DIRS: tuple[str, ...] = ("node_modules", "__pycache__")

# ============================================================================
# Manifest Schema
# ============================================================================

#: Version stamped into freshly created manifests
MANIFEST_VERSION: str = "1.0.0"

#: Generator name recorded in the manifest
GENERATOR_NAME: str = "ddd-scaffold"

#: Schema version of transaction journal files
JOURNAL_SCHEMA_VERSION: str = "1.0"

#: Number of hex characters kept from the SHA-256 digest
HASH_LENGTH: int = 16

# ============================================================================
# File Kinds
# ============================================================================

#: Every kind a generated file can be recorded as
FILE_KINDS: tuple[str, ...] = (
    "entity",
    "dto",
    "service",
    "controller",
    "repository",
    "module",
    "test",
    "other",
)

#: Filename markers used to infer a kind when the caller does not supply one.
#: Checked in order; the first match wins.
KIND_MARKERS: tuple[tuple[str, str], ...] = (
    (".entity.", "entity"),
    (".dto.", "dto"),
    (".service.", "service"),
    (".controller.", "controller"),
    (".repository.", "repository"),
    (".module.", "module"),
    (".spec.", "test"),
    (".test.", "test"),
)

# ============================================================================
# Presentation & Retention
# ============================================================================

#: Maximum paths listed per bucket in a plan summary
SUMMARY_PREVIEW_LIMIT: int = 5

#: Default number of backups kept per file by cleanup
DEFAULT_KEEP_BACKUPS: int = 10
