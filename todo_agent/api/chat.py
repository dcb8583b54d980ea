from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from todo_agent.agent.conversations import ConversationRegistry
from todo_agent.agent.core import AgentCore
from todo_agent.agent.errors import ConversationBusy, InvalidSequence
from todo_agent.agent.message_store import MessageStore
from todo_agent.agent.providers.claude import ClaudeClient
from todo_agent.agent.tools.todos import create_todo_registry
from todo_agent.agent.types import RunRequest, RunResult
from todo_agent.config import get_settings
from todo_agent.persistence.db import SessionLocal
from todo_agent.schemas.events import ChatRequest, ChatResponse, StreamEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def build_agent_core() -> AgentCore:
    settings = get_settings()
    model = ClaudeClient(
        api_key=settings.anthropic_api_key,
        model=settings.claude_model,
        max_tokens=settings.claude_max_tokens,
        mock_mode=settings.mock_llm,
    )
    return AgentCore(settings=settings, registry=create_todo_registry(SessionLocal), model=model)


def _app_core(app: Any) -> AgentCore:
    core = getattr(app.state, "agent_core", None)
    if core is None:
        core = build_agent_core()
        app.state.agent_core = core
    return core


def _app_conversations(app: Any) -> ConversationRegistry:
    registry = getattr(app.state, "conversations", None)
    if registry is None:
        settings = get_settings()
        registry = ConversationRegistry(
            max_conversations=settings.max_conversations,
            ttl_seconds=settings.conversation_ttl_seconds,
        )
        app.state.conversations = registry
    return registry


def get_agent_core(request: Request) -> AgentCore:
    return _app_core(request.app)


def get_conversations(request: Request) -> ConversationRegistry:
    return _app_conversations(request.app)


def _is_disconnect_error(exc: BaseException) -> bool:
    if isinstance(exc, WebSocketDisconnect):
        return True
    if type(exc).__name__ in {"ClientDisconnected", "ConnectionClosed", "ConnectionClosedOK", "ConnectionClosedError"}:
        return True
    if isinstance(exc, RuntimeError):
        text = str(exc)
        return "close message has been sent" in text or "WebSocket is not connected" in text
    return False


async def _safe_send_json(websocket: Any, payload: dict[str, Any]) -> bool:
    """Send a frame; ``False`` when the client is already gone."""
    try:
        await websocket.send_json(payload)
        return True
    except Exception as exc:
        if _is_disconnect_error(exc):
            return False
        raise


def _encode_sse(event: dict[str, Any]) -> str:
    payload = StreamEvent.model_validate(event).model_dump(mode="json", exclude_none=True)
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _response_from_result(result: RunResult) -> ChatResponse:
    return ChatResponse.model_validate(result.to_payload())


@asynccontextmanager
async def _resolve_store(
    payload: ChatRequest,
    conversations: ConversationRegistry,
) -> AsyncIterator[MessageStore | None]:
    if payload.conversation_id is None:
        yield None
        return
    if payload.history:
        raise HTTPException(status_code=400, detail="Send either 'history' or 'conversation_id', not both")
    async with conversations.acquire(payload.conversation_id) as store:
        yield store


def _run_request(payload: ChatRequest) -> RunRequest:
    return RunRequest(
        message=payload.message,
        history=list(payload.history),
        max_iterations=payload.max_iterations,
        deadline_seconds=payload.deadline_seconds,
        run_id=payload.run_id or uuid.uuid4().hex,
    )


@router.post("/api/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    core: AgentCore = Depends(get_agent_core),
    conversations: ConversationRegistry = Depends(get_conversations),
) -> ChatResponse:
    try:
        async with _resolve_store(payload, conversations) as store:
            result = await core.run_turn(_run_request(payload), store=store, conversation_id=payload.conversation_id)
    except InvalidSequence as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ConversationBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _response_from_result(result)


@router.post("/api/chat/stream")
async def chat_stream(
    payload: ChatRequest,
    core: AgentCore = Depends(get_agent_core),
    conversations: ConversationRegistry = Depends(get_conversations),
) -> StreamingResponse:
    if payload.conversation_id is not None and payload.history:
        raise HTTPException(status_code=400, detail="Send either 'history' or 'conversation_id', not both")

    run_request = _run_request(payload)
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    sentinel: dict[str, Any] = {"type": "__done__"}

    async def emit(event: dict[str, Any]) -> None:
        queue.put_nowait(event)

    async def _run() -> None:
        try:
            async with _resolve_store(payload, conversations) as store:
                result = await core.run_turn(run_request, store=store, emit=emit, conversation_id=payload.conversation_id)
            queue.put_nowait({"type": "complete", "run_id": result.run_id, "result": result.to_payload()})
        except (InvalidSequence, ConversationBusy) as exc:
            queue.put_nowait({"type": "error", "run_id": run_request.run_id, "error": str(exc)})
        except Exception as exc:
            logger.exception("Streaming run %s failed", run_request.run_id)
            queue.put_nowait({"type": "error", "run_id": run_request.run_id, "error": str(exc)})
        finally:
            queue.put_nowait(sentinel)

    async def _events() -> AsyncIterator[str]:
        task = asyncio.create_task(_run())
        try:
            while True:
                item = await queue.get()
                if item is sentinel:
                    break
                yield _encode_sse(item)
        finally:
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    return StreamingResponse(
        _events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    conversation_id: str | None = Query(default=None),
) -> None:
    await websocket.accept()

    core = _app_core(websocket.app)
    conversations = _app_conversations(websocket.app)
    resolved_id = conversation_id or uuid.uuid4().hex

    async def emit(event: dict[str, Any]) -> None:
        await _safe_send_json(websocket, {**event, "conversation_id": resolved_id})

    try:
        while True:
            incoming = await websocket.receive_json()
            msg_type = str(incoming.get("type", "")).strip().lower()

            if msg_type == "ping":
                await _safe_send_json(websocket, {"type": "pong"})
                continue

            if msg_type not in {"chat", "user_message"}:
                await _safe_send_json(
                    websocket,
                    {"type": "error", "conversation_id": resolved_id, "error": "Unsupported message type"},
                )
                continue

            content = str(incoming.get("content") or incoming.get("message") or "").strip()
            if not content:
                await _safe_send_json(
                    websocket,
                    {"type": "error", "conversation_id": resolved_id, "error": "Empty content"},
                )
                continue

            raw_max = incoming.get("max_iterations")
            raw_deadline = incoming.get("deadline_seconds")
            run_request = RunRequest(
                message=content,
                max_iterations=raw_max if isinstance(raw_max, int) else None,
                deadline_seconds=float(raw_deadline) if isinstance(raw_deadline, (int, float)) and raw_deadline > 0 else None,
                run_id=uuid.uuid4().hex,
            )
            try:
                async with conversations.acquire(resolved_id) as store:
                    result = await core.run_turn(run_request, store=store, emit=emit, conversation_id=resolved_id)
            except (InvalidSequence, ConversationBusy) as exc:
                await _safe_send_json(
                    websocket,
                    {"type": "error", "conversation_id": resolved_id, "run_id": run_request.run_id, "error": str(exc)},
                )
                continue

            sent = await _safe_send_json(
                websocket,
                {"type": "complete", "conversation_id": resolved_id, "run_id": result.run_id, "result": result.to_payload()},
            )
            if not sent:
                return
    except Exception as exc:
        if _is_disconnect_error(exc):
            return
        raise
