"""Trace output for the state-directory machinery.

The manifest store, transaction journal, backup store, recovery points and the
low-level write/delete helpers report what they touch under ``.ddd/`` through
debug(). Output goes to stdout with a ``[DEBUG]`` prefix and is off unless
DDD_SCAFFOLD_DEBUG is set to ``1``, ``true`` or ``yes`` (any case).

Structured events for the generation run itself go through structlog; this is
only for following individual file operations while diagnosing a project::

    $ DDD_SCAFFOLD_DEBUG=1 ddd-scaffold apply --root . --input request.json
    [DEBUG] create: /work/app/src/users/user.entity.ts (41 bytes)
    [DEBUG] Saved manifest with 3 file(s) to /work/app/.ddd/generation-manifest.json

The flag is read once at import.
"""

import os
import sys
from typing import Any

from ddd_scaffold.core.constants import DEBUG_ENV

_DEBUG_ENABLED = os.environ.get(DEBUG_ENV, "").lower() in ("1", "true", "yes")


def debug_enabled() -> bool:
    return _DEBUG_ENABLED


def debug(msg: Any, **context: Any) -> None:
    """Print ``msg`` when tracing is on.

    Keyword arguments are appended as ``key=value`` pairs, e.g.
    ``debug("rollback", transaction_id=txn, path="src/a.ts")``.
    """
    if not _DEBUG_ENABLED:
        return
    line = str(msg)
    if context:
        line += " " + " ".join(f"{key}={value}" for key, value in context.items())
    print(f"[DEBUG] {line}", file=sys.stdout)
