"""WebSocket handler for the assistant chat.

Turns run as background tasks so that session switches, new sessions and
deletions sent while a turn is pending take effect immediately; the pending
turn's response is then dropped by the orchestrator.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from internmatch.agents.orchestrator import TurnOrchestrator, TurnOutcome
from internmatch.api.sessions import dump_session
from internmatch.models.session import UserType
from internmatch.services import get_orchestrator, get_store
from internmatch.session import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter()

# Keep references so pending turns outlive their connection and finish persisting
_background_turns: set[asyncio.Task] = set()


async def _safe_send(websocket: WebSocket, message: dict) -> None:
    try:
        await websocket.send_json(message)
    except Exception:
        logger.debug("Failed to push %s frame to closed socket", message.get("type"))


def _snapshot(store: SessionStore, user_type: UserType) -> dict:
    return {
        "type": "session",
        "activeSessionId": store.active_session_id(user_type),
        "session": dump_session(store.active_session(user_type)),
        "sessions": [
            {"id": s.id, "name": s.name, "createdAt": s.created_at.isoformat(), "phase": s.phase.value}
            for s in store.list_sessions(user_type)
        ],
    }


@router.websocket("/ws/{user_type}")
async def websocket_endpoint(
    websocket: WebSocket,
    user_type: str,
    store: SessionStore = Depends(get_store),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    await websocket.accept()

    try:
        kind = UserType(user_type)
    except ValueError:
        await websocket.send_json({"type": "error", "content": "Invalid user type"})
        await websocket.close()
        return

    async def run_turn(session_id: str | None, content: str) -> None:
        result = await orchestrator.submit_turn(session_id, content, kind)
        await _safe_send(websocket, {"type": "turn", **result.model_dump(mode="json")})
        if result.outcome != TurnOutcome.DISCARDED:
            await _safe_send(websocket, _snapshot(store, kind))

    await websocket.send_json(_snapshot(store, kind))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                data = {"type": "message", "content": raw}

            msg_type = data.get("type", "message")

            if msg_type == "message":
                content = data.get("content", "")
                if not content.strip():
                    continue
                session_id = data.get("sessionId") or store.active_session_id(kind)
                task = asyncio.create_task(run_turn(session_id, content))
                _background_turns.add(task)
                task.add_done_callback(_background_turns.discard)
                continue

            if msg_type == "new_session":
                session = store.start_new_session(kind)
                orchestrator.send_welcome(session.id)
            elif msg_type == "load_session":
                if not store.load_session(data.get("sessionId", ""), kind):
                    await websocket.send_json({"type": "error", "content": "Unknown session"})
                    continue
            elif msg_type == "delete_session":
                if not store.delete_session(data.get("sessionId", "")):
                    await websocket.send_json({"type": "error", "content": "Unknown session"})
                    continue
            elif msg_type == "rename_session":
                store.rename_session(data.get("sessionId", ""), data.get("name", ""))
            else:
                await websocket.send_json({"type": "error", "content": f"Unsupported frame: {msg_type}"})
                continue

            await websocket.send_json(_snapshot(store, kind))

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for %s sessions", kind.value)
        # Pending turns keep running so their results are persisted
    except Exception:
        logger.exception("WebSocket error for %s sessions", kind.value)
        await _safe_send(websocket, {
            "type": "error",
            "content": "An unexpected error occurred. Please try again.",
        })
