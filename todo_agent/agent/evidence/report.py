from __future__ import annotations

from todo_agent.agent.evidence.formatter import format_outcome
from todo_agent.agent.types import RunStatus, ToolOutcome

MUTATING_KINDS = {"todo_change", "todo_deleted"}
MUTATING_TOOLS = {"create_todo", "update_todo", "delete_todo"}

ITERATION_LIMIT_TEXT = "I stopped after reaching the tool-iteration limit"


def _label(status: RunStatus, *, iterations: int, max_iterations: int, reason: str | None) -> str:
    if status == RunStatus.ITERATION_LIMIT_REACHED:
        return f"[Incomplete] {ITERATION_LIMIT_TEXT} ({iterations} of {max_iterations} model calls)."
    if status == RunStatus.DEADLINE_EXCEEDED:
        return "[Incomplete] I stopped because the time budget for this request ran out."
    if status == RunStatus.ABORTED:
        detail = f": {reason}" if reason else "."
        return f"[Failed] The language model endpoint failed{detail}"
    return f"[Incomplete] Run ended with status {status.value}."


def _is_change(outcome: ToolOutcome) -> bool:
    if not outcome.success or outcome.duplicate:
        return False
    kind = str((outcome.payload or {}).get("result_kind") or "")
    return kind in MUTATING_KINDS or outcome.tool_name in MUTATING_TOOLS


def _is_unknown(outcome: ToolOutcome) -> bool:
    # a mutating call cut off by a timeout may already have committed
    return not outcome.success and outcome.error_code == "TIMEOUT" and outcome.tool_name in MUTATING_TOOLS


def render_partial_summary(
    status: RunStatus,
    outcomes: list[ToolOutcome],
    *,
    iterations: int,
    max_iterations: int,
    reason: str | None = None,
) -> str:
    """Labelled report for a run that did not finish normally.

    Built only from outcomes that were actually produced, so it separates
    "nothing happened" from "partially completed". Timed-out writes are
    reported as unknown, never as not applied.
    """
    lines = [_label(status, iterations=iterations, max_iterations=max_iterations, reason=reason)]

    changes = [outcome for outcome in outcomes if _is_change(outcome)]
    reads = [outcome for outcome in outcomes if outcome.success and not outcome.duplicate and not _is_change(outcome)]
    unknown = [outcome for outcome in outcomes if _is_unknown(outcome)]
    failures = [
        outcome for outcome in outcomes if not outcome.success and not outcome.duplicate and not _is_unknown(outcome)
    ]

    if changes:
        lines.append("Partially completed. These changes were applied before stopping:")
        lines.extend(format_outcome(outcome) for outcome in changes)
    elif unknown:
        lines.append("No change was confirmed before stopping, but some writes timed out and their outcome is unknown.")
    elif reads:
        lines.append("No changes were made. Information gathered before stopping:")
    else:
        lines.append("Nothing happened: no tool produced a result before stopping, so no todos were changed.")

    if reads:
        if changes or unknown:
            lines.append("Information gathered:")
        lines.extend(format_outcome(outcome) for outcome in reads)
    if unknown:
        lines.append("Outcome unknown (timed out, may or may not have been applied; check before retrying):")
        lines.extend(format_outcome(outcome) for outcome in unknown)
    if failures:
        lines.append("Calls that failed:")
        lines.extend(format_outcome(outcome) for outcome in failures)
    lines.append("The remaining work was not done. Ask again to continue.")
    return "\n\n".join(lines)
