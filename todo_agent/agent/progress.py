from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

logger = logging.getLogger(__name__)

Emitter = Callable[[dict[str, Any]], Awaitable[None]]
Phase = Literal["planning", "executing", "summarizing"]

_SENTINEL: dict[str, Any] = {"type": "__done__"}


@dataclass(frozen=True)
class ProgressEvent:
    iteration: int
    phase: Phase
    tool_name: str | None = None
    elapsed_ms: int | None = None

    def to_dict(self, *, run_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "progress",
            "run_id": run_id,
            "iteration": self.iteration,
            "phase": self.phase,
        }
        if self.tool_name is not None:
            payload["tool_name"] = self.tool_name
        if self.elapsed_ms is not None:
            payload["elapsed_ms"] = self.elapsed_ms
        return payload


class ProgressChannel:
    """Fire-and-forget event channel between the loop and a transport sink.

    ``emit`` only enqueues. A pump task drains the queue into the sink in
    order; a sink failure is logged and the pump keeps going. ``aclose``
    waits at most ``drain_timeout`` seconds for the pump, then drops what is
    left and counts it in ``delivery_failures``.
    """

    def __init__(self, sink: Emitter | None, *, run_id: str | None = None, drain_timeout: float = 2.0) -> None:
        self._sink = sink
        self.run_id = run_id
        self.drain_timeout = drain_timeout
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._pump_task: asyncio.Task[None] | None = None
        self._closed = False
        self._delivering = False
        self.delivery_failures = 0

    async def _pump(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _SENTINEL:
                break
            if self._sink is None:
                continue
            self._delivering = True
            try:
                await self._sink(item)
            except Exception as exc:
                self.delivery_failures += 1
                logger.warning("Progress sink failed for %s event: %s", item.get("type"), exc)
            finally:
                self._delivering = False

    def start(self) -> "ProgressChannel":
        if self._pump_task is None and self._sink is not None:
            self._pump_task = asyncio.create_task(self._pump(), name=f"progress:{self.run_id}")
        return self

    def emit(self, event: ProgressEvent | dict[str, Any]) -> None:
        if self._closed or self._sink is None:
            return
        payload = event.to_dict(run_id=self.run_id) if isinstance(event, ProgressEvent) else dict(event)
        payload.setdefault("run_id", self.run_id)
        self._queue.put_nowait(payload)

    def lifecycle(self, event_type: str, **fields: Any) -> None:
        self.emit({"type": event_type, "run_id": self.run_id, **fields})

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pump_task is None:
            return
        self._queue.put_nowait(_SENTINEL)
        try:
            done, _ = await asyncio.wait({self._pump_task}, timeout=self.drain_timeout)
        except asyncio.CancelledError:
            self._pump_task.cancel()
            raise
        if done:
            return

        dropped = 1 if self._delivering else 0
        self._pump_task.cancel()
        await asyncio.gather(self._pump_task, return_exceptions=True)
        while not self._queue.empty():
            if self._queue.get_nowait() is not _SENTINEL:
                dropped += 1
        self.delivery_failures += dropped
        logger.warning(
            "Progress sink for run %s did not drain within %.1fs; dropped %d event(s)",
            self.run_id,
            self.drain_timeout,
            dropped,
        )

    async def __aenter__(self) -> "ProgressChannel":
        return self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
