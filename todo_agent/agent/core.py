from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from todo_agent.agent.errors import ModelEndpointFailure
from todo_agent.agent.evidence import format_outcome, render_partial_summary
from todo_agent.agent.fanout import execute_batch
from todo_agent.agent.message_store import MessageStore
from todo_agent.agent.messages import ToolInvocationBlock, Turn
from todo_agent.agent.progress import Emitter, ProgressChannel, ProgressEvent
from todo_agent.agent.prompt import build_system_prompt
from todo_agent.agent.providers.base import ModelClient
from todo_agent.agent.tools.context import ToolContext
from todo_agent.agent.tools.registry import ToolRegistry
from todo_agent.agent.types import ModelResponse, RunRequest, RunResult, RunState, RunStatus, ToolCall, ToolOutcome
from todo_agent.config import Settings, clamp_max_iterations
from todo_agent.run_logging import write_llm_io_files, write_run_summary, write_tool_io_file

logger = logging.getLogger(__name__)


def _unique_calls(calls: list[ToolCall]) -> list[ToolCall]:
    """Give every call in one response a distinct, non-empty id."""
    seen: set[str] = set()
    out: list[ToolCall] = []
    for index, call in enumerate(calls):
        call_id = str(call.id or "").strip() or f"call_{index}"
        candidate = call_id
        suffix = 1
        while candidate in seen:
            suffix += 1
            candidate = f"{call_id}_{suffix}"
        seen.add(candidate)
        arguments = call.input if isinstance(call.input, dict) else {"raw": call.input}
        out.append(ToolCall(id=candidate, name=call.name, input=arguments))
    return out


class AgentCore:
    def __init__(
        self,
        *,
        settings: Settings,
        registry: ToolRegistry,
        model: ModelClient,
        system_prompt: str | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.model = model
        self._system_prompt = system_prompt

    def system_prompt(self, *, max_iterations: int, deadline_seconds: float) -> str:
        if self._system_prompt is not None:
            return self._system_prompt
        return build_system_prompt(max_iterations=max_iterations, deadline_seconds=deadline_seconds)

    async def _call_model(self, *, working: MessageStore, run_state: RunState, run_id: str, system_prompt: str) -> ModelResponse:
        tools = self.registry.anthropic_schemas()
        turns = working.snapshot()
        response = await asyncio.wait_for(
            self.model.complete(turns=turns, tools=tools, system_prompt=system_prompt),
            timeout=run_state.remaining(),
        )
        write_llm_io_files(
            run_id=run_id,
            iteration=run_state.iteration,
            request_record={
                "model_client": type(self.model).__name__,
                "system_prompt": system_prompt,
                "tools": [tool.get("name") for tool in tools],
                "turns": [turn.model_dump(mode="json") for turn in turns],
            },
            answer_json={
                "text": response.text,
                "tool_calls": [{"id": call.id, "name": call.name, "input": call.input} for call in response.tool_calls],
                "provider_state": response.provider_state,
            },
        )
        return response

    def _log_outcomes(self, *, run_id: str, iteration: int, outcomes: list[ToolOutcome], offset: int) -> None:
        for index, outcome in enumerate(outcomes):
            write_tool_io_file(
                run_id=run_id,
                iteration=iteration,
                tool_call_index=offset + index,
                tool_name=outcome.tool_name,
                tool_use_id=outcome.invocation_id,
                arguments=outcome.arguments,
                result=outcome.payload,
                error=outcome.error,
                duplicate=outcome.duplicate,
                latency_ms=outcome.latency_ms,
            )

    async def run_turn(
        self,
        request: RunRequest,
        *,
        store: MessageStore | None = None,
        emit: Emitter | None = None,
        conversation_id: str | None = None,
    ) -> RunResult:
        """Drive one requester message to a terminal state.

        ``store`` is only written once, at the end, with every turn the run
        produced. A cancelled run leaves it untouched. ``InvalidSequence`` is
        raised before any model call when the history or the new message
        would break alternation.
        """
        run_id = request.run_id or uuid.uuid4().hex
        max_iterations = clamp_max_iterations(request.max_iterations, default=self.settings.max_iterations)
        deadline_seconds = request.deadline_seconds or self.settings.run_deadline_seconds

        if store is None:
            store = MessageStore.from_turns(request.history)
        working = store.fork()
        start_index = len(working)
        working.append(Turn.requester(request.message))

        run_state = RunState.start(max_iterations=max_iterations, deadline_seconds=deadline_seconds)
        run_state.status = RunStatus.RUNNING
        system_prompt = self.system_prompt(max_iterations=max_iterations, deadline_seconds=deadline_seconds)
        base_ctx = ToolContext(conversation_id=conversation_id, run_id=run_id)
        channel = ProgressChannel(emit, run_id=run_id, drain_timeout=self.settings.progress_drain_seconds).start()
        channel.lifecycle("run_start", max_iterations=max_iterations, deadline_seconds=deadline_seconds)

        final_text = ""
        error: str | None = None
        tool_call_index = 0
        try:
            while True:
                if run_state.iteration >= max_iterations:
                    run_state.status = RunStatus.ITERATION_LIMIT_REACHED
                    break
                if run_state.expired():
                    run_state.status = RunStatus.DEADLINE_EXCEEDED
                    break

                run_state.iteration += 1
                iteration = run_state.iteration
                channel.emit(ProgressEvent(iteration=iteration, phase="planning", elapsed_ms=run_state.elapsed_ms()))
                logger.info("Run %s iteration %d/%d: calling model", run_id, iteration, max_iterations)

                try:
                    response = await self._call_model(
                        working=working,
                        run_state=run_state,
                        run_id=run_id,
                        system_prompt=system_prompt,
                    )
                except asyncio.TimeoutError:
                    logger.warning("Run %s: model call outlived the run deadline", run_id)
                    run_state.status = RunStatus.DEADLINE_EXCEEDED
                    break
                except ModelEndpointFailure as exc:
                    run_state.status = RunStatus.ABORTED
                    error = str(exc)
                    break
                except Exception as exc:
                    logger.exception("Run %s: model endpoint raised", run_id)
                    run_state.status = RunStatus.ABORTED
                    error = f"{type(exc).__name__}: {exc}"
                    break

                if not response.tool_calls:
                    channel.emit(ProgressEvent(iteration=iteration, phase="summarizing", elapsed_ms=run_state.elapsed_ms()))
                    final_text = response.text.strip() or "I have nothing further to add."
                    working.append(Turn.assistant(final_text))
                    run_state.more_actions_needed = False
                    run_state.status = RunStatus.COMPLETED
                    break

                calls = _unique_calls(response.tool_calls)
                working.append(
                    Turn.assistant(
                        response.text,
                        [ToolInvocationBlock(id=call.id, name=call.name, arguments=call.input) for call in calls],
                    )
                )
                run_state.more_actions_needed = True

                def _on_tool_start(call: ToolCall, iteration: int = iteration) -> None:
                    channel.emit(
                        ProgressEvent(
                            iteration=iteration,
                            phase="executing",
                            tool_name=call.name,
                            elapsed_ms=run_state.elapsed_ms(),
                        )
                    )

                outcomes = await execute_batch(
                    calls,
                    registry=self.registry,
                    run_state=run_state,
                    call_timeout=self.settings.tool_timeout_seconds,
                    ctx=ToolContext(conversation_id=conversation_id, run_id=run_id, iteration=iteration),
                    on_tool_start=_on_tool_start,
                )
                run_state.record(outcomes)
                self._log_outcomes(run_id=run_id, iteration=iteration, outcomes=outcomes, offset=tool_call_index)
                tool_call_index += len(outcomes)
                working.append(Turn.outcomes([outcome.to_block(format_outcome(outcome)) for outcome in outcomes]))

            if run_state.status != RunStatus.COMPLETED:
                channel.emit(
                    ProgressEvent(iteration=run_state.iteration, phase="summarizing", elapsed_ms=run_state.elapsed_ms())
                )
                final_text = render_partial_summary(
                    run_state.status,
                    run_state.outcomes,
                    iterations=run_state.iteration,
                    max_iterations=max_iterations,
                    reason=error,
                )
                working.append(Turn.assistant(final_text))

            history_delta = working.turns_since(start_index)
            store.extend(history_delta)

            result = RunResult(
                content=final_text,
                iterations=run_state.iteration,
                tools_executed=list(run_state.tools_executed),
                status=run_state.status,
                partial=run_state.status != RunStatus.COMPLETED,
                run_id=run_id,
                history_delta=history_delta,
                error=error,
            )
            if run_state.status == RunStatus.ABORTED:
                channel.lifecycle("run_error", error=error, iterations=result.iterations)
            channel.lifecycle(
                "run_complete",
                status=result.status.value,
                iterations=result.iterations,
                tools_executed=result.tools_executed,
                partial=result.partial,
                elapsed_ms=run_state.elapsed_ms(),
            )
            logger.info(
                "Run %s finished: status=%s iterations=%d tools=%d",
                run_id,
                result.status.value,
                result.iterations,
                len(result.tools_executed),
            )
            write_run_summary(run_id=run_id, summary=self._summary(result, base_ctx))
            return result
        finally:
            await channel.aclose()

    @staticmethod
    def _summary(result: RunResult, ctx: ToolContext) -> dict[str, Any]:
        return {
            **ctx.lineage(),
            "status": result.status.value,
            "iterations": result.iterations,
            "tools_executed": result.tools_executed,
            "partial": result.partial,
            "error": result.error,
        }
