from todo_agent.agent.evidence.formatter import (
    format_comparison,
    format_error,
    format_outcome,
    format_todo,
    format_todo_list,
)
from todo_agent.agent.evidence.report import ITERATION_LIMIT_TEXT, render_partial_summary

__all__ = [
    "ITERATION_LIMIT_TEXT",
    "format_comparison",
    "format_error",
    "format_outcome",
    "format_todo",
    "format_todo_list",
    "render_partial_summary",
]
