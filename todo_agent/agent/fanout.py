from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from todo_agent.agent.dedup import invocation_signature
from todo_agent.agent.tools.context import ToolContext
from todo_agent.agent.tools.errors import error_payload, unknown_error_payload
from todo_agent.agent.tools.registry import ToolRegistry
from todo_agent.agent.types import RunState, ToolCall, ToolOutcome

logger = logging.getLogger(__name__)

DUPLICATE_CODE = "DUPLICATE_INVOCATION_SKIPPED"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _outcome_from_result(call: ToolCall, result: dict[str, Any], latency_ms: int) -> ToolOutcome:
    if result.get("status") == "success":
        output = result.get("output")
        return ToolOutcome(
            invocation_id=call.id,
            tool_name=call.name,
            success=True,
            payload=output if isinstance(output, dict) else {"value": output},
            latency_ms=latency_ms,
            arguments=dict(call.input or {}),
        )
    error = result.get("error")
    return ToolOutcome(
        invocation_id=call.id,
        tool_name=call.name,
        success=False,
        error=error if isinstance(error, dict) else error_payload("UPSTREAM_ERROR", str(error or "Tool failed")),
        latency_ms=latency_ms,
        arguments=dict(call.input or {}),
    )


def _timeout_outcome(call: ToolCall, *, seconds: float, scope: str, latency_ms: int) -> ToolOutcome:
    return ToolOutcome(
        invocation_id=call.id,
        tool_name=call.name,
        success=False,
        error=error_payload(
            "TIMEOUT",
            f"Tool '{call.name}' did not finish within {seconds:g}s and was cancelled",
            retryable=True,
            scope=scope,
        ),
        latency_ms=latency_ms,
        arguments=dict(call.input or {}),
    )


async def _run_one(
    call: ToolCall,
    args: Any,
    *,
    registry: ToolRegistry,
    call_timeout: float,
    ctx: ToolContext | None,
) -> ToolOutcome:
    started = time.monotonic()
    call_ctx = ctx.with_tool(tool_name=call.name, tool_use_id=call.id) if ctx is not None else None
    try:
        result = await asyncio.wait_for(
            registry.execute_validated(call.name, args, call_ctx),
            timeout=call_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Tool '%s' (%s) timed out after %.1fs", call.name, call.id, call_timeout)
        return _timeout_outcome(call, seconds=call_timeout, scope="call", latency_ms=_elapsed_ms(started))
    return _outcome_from_result(call, result, _elapsed_ms(started))


async def execute_batch(
    calls: list[ToolCall],
    *,
    registry: ToolRegistry,
    run_state: RunState,
    call_timeout: float,
    ctx: ToolContext | None = None,
    on_tool_start: Callable[[ToolCall], None] | None = None,
) -> list[ToolOutcome]:
    """Execute one batch of invocations and return outcomes in issue order.

    Arguments are validated before dedup, so a malformed call never claims a
    signature. Every claimed call runs as its own task bounded by
    ``call_timeout``; the batch as a whole is bounded by the run deadline.
    Calls still running when the deadline passes are cancelled and reported
    as ``TIMEOUT`` failures.
    """
    outcomes: list[ToolOutcome | None] = [None] * len(calls)
    tasks: dict[asyncio.Task[ToolOutcome], int] = {}
    batch_started = time.monotonic()

    for index, call in enumerate(calls):
        args, validation_error = registry.validate(call.name, call.input)
        if validation_error is not None:
            outcomes[index] = ToolOutcome(
                invocation_id=call.id,
                tool_name=call.name,
                success=False,
                error=validation_error,
                arguments=dict(call.input or {}) if isinstance(call.input, dict) else {},
            )
            continue

        # normalized arguments, so defaults and stripped whitespace compare equal
        signature = invocation_signature(call.name, args.model_dump(mode="json"))
        if not run_state.dedup.claim(signature):
            logger.info("Skipping duplicate invocation of '%s' (%s)", call.name, call.id)
            outcomes[index] = ToolOutcome(
                invocation_id=call.id,
                tool_name=call.name,
                success=False,
                error=error_payload(
                    DUPLICATE_CODE,
                    f"Skipped: '{call.name}' was already executed with identical arguments in this run",
                    signature=signature,
                ),
                duplicate=True,
                arguments=dict(call.input or {}),
            )
            continue

        if on_tool_start is not None:
            on_tool_start(call)
        task = asyncio.create_task(
            _run_one(call, args, registry=registry, call_timeout=call_timeout, ctx=ctx),
            name=f"tool:{call.name}:{call.id}",
        )
        tasks[task] = index

    if tasks:
        pending: set[asyncio.Task[ToolOutcome]] = set(tasks)
        try:
            done, pending = await asyncio.wait(set(tasks), timeout=run_state.remaining())
            for task in done:
                call = calls[tasks[task]]
                exc = task.exception()
                if exc is not None:
                    logger.error("Tool task for '%s' failed: %s", call.name, exc)
                    outcomes[tasks[task]] = ToolOutcome(
                        invocation_id=call.id,
                        tool_name=call.name,
                        success=False,
                        error=unknown_error_payload(exc),
                        latency_ms=_elapsed_ms(batch_started),
                        arguments=dict(call.input or {}),
                    )
                else:
                    outcomes[tasks[task]] = task.result()
            if pending:
                run_state.deadline_hit = True
            for task in pending:
                call = calls[tasks[task]]
                logger.warning("Run deadline reached; cancelling tool '%s' (%s)", call.name, call.id)
                outcomes[tasks[task]] = _timeout_outcome(
                    call,
                    seconds=_elapsed_ms(batch_started) / 1000,
                    scope="run_deadline",
                    latency_ms=_elapsed_ms(batch_started),
                )
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    return [outcome for outcome in outcomes if outcome is not None]
