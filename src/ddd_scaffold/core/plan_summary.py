"""Human-readable and JSON renderings of a Plan.

Presentation only: nothing else depends on the exact text.
"""

from __future__ import annotations

from typing import Any

from ddd_scaffold.core.constants import SUMMARY_PREVIEW_LIMIT
from ddd_scaffold.core.schemas import Operation, Plan


def summarize_plan(plan: Plan, limit: int = SUMMARY_PREVIEW_LIMIT) -> str:
    """Summarize what executing ``plan`` would change.

    Creates and updates list at most ``limit`` paths each; every conflict is
    listed with its reason; skips are only counted.
    """
    lines: list[str] = []

    _append_bucket(lines, "Create", plan.create, "+", limit)
    _append_bucket(lines, "Update", plan.update, "~", limit)

    if plan.conflict:
        lines.append(f"Conflicts in {len(plan.conflict)} files:")
        for op in plan.conflict:
            lines.append(f"  ! {op.path} ({op.reason})")

    if plan.skip:
        lines.append(f"Skip {len(plan.skip)} unchanged files")

    if not lines:
        return "Nothing to do"

    return "\n".join(lines)


def _append_bucket(
    lines: list[str],
    verb: str,
    ops: tuple[Operation, ...],
    marker: str,
    limit: int,
) -> None:
    if not ops:
        return

    lines.append(f"{verb} {len(ops)} files:")
    for op in ops[:limit]:
        lines.append(f"  {marker} {op.path}")
    if len(ops) > limit:
        lines.append(f"  ... and {len(ops) - limit} more")


def plan_to_dict(plan: Plan) -> dict[str, Any]:
    """Serialize a plan for ``--json`` output, without file contents."""

    def _ops(ops: tuple[Operation, ...]) -> list[dict[str, Any]]:
        return [
            op.model_dump(mode="json", exclude={"content"}, exclude_none=True)
            for op in ops
        ]

    return {
        "summary": {
            "create": len(plan.create),
            "update": len(plan.update),
            "skip": len(plan.skip),
            "conflict": len(plan.conflict),
            "total": plan.total,
        },
        "create": _ops(plan.create),
        "update": _ops(plan.update),
        "skip": _ops(plan.skip),
        "conflict": _ops(plan.conflict),
    }
