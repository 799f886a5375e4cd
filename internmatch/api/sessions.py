"""REST endpoints for assistant sessions and turns."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from internmatch.agents.orchestrator import TurnOrchestrator
from internmatch.models.session import ChatSession, UserType
from internmatch.services import get_orchestrator, get_store
from internmatch.session import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["sessions"])


class TurnBody(BaseModel):
    message: str


class RenameBody(BaseModel):
    name: str


def dump_session(session: ChatSession | None) -> dict[str, Any] | None:
    if session is None:
        return None
    return session.model_dump(mode="json", by_alias=True)


def _require(store: SessionStore, session_id: str) -> ChatSession:
    session = store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


@router.get("/{user_type}/sessions")
async def list_sessions(user_type: UserType, store: SessionStore = Depends(get_store)):
    return {
        "sessions": [dump_session(s) for s in store.list_sessions(user_type)],
        "activeSessionId": store.active_session_id(user_type),
    }


@router.post("/{user_type}/sessions")
async def start_session(user_type: UserType, store: SessionStore = Depends(get_store)):
    session = store.start_new_session(user_type)
    return {"session": dump_session(session), "persisted": store.last_error is None}


@router.post("/{user_type}/turns")
async def submit_turn_to_active(
    user_type: UserType,
    body: TurnBody,
    store: SessionStore = Depends(get_store),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    """Submit to the active session, starting one if the user has none yet."""
    result = await orchestrator.submit_turn(None, body.message, user_type)
    session = store.get_session(result.session_id) if result.session_id else None
    return {"result": result.model_dump(mode="json"), "session": dump_session(session)}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    return dump_session(_require(store, session_id))


@router.patch("/sessions/{session_id}")
async def rename_session(
    session_id: str, body: RenameBody, store: SessionStore = Depends(get_store)
):
    _require(store, session_id)
    if not store.rename_session(session_id, body.name):
        raise HTTPException(status_code=422, detail="Session name must not be blank")
    return dump_session(store.get_session(session_id))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, store: SessionStore = Depends(get_store)):
    session = _require(store, session_id)
    store.delete_session(session_id)
    return {"deleted": session_id, "activeSessionId": store.active_session_id(session.user_type)}


@router.post("/sessions/{session_id}/load")
async def load_session(session_id: str, store: SessionStore = Depends(get_store)):
    _require(store, session_id)
    store.load_session(session_id)
    return dump_session(store.get_session(session_id))


@router.post("/sessions/{session_id}/welcome")
async def send_welcome(
    session_id: str,
    store: SessionStore = Depends(get_store),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    _require(store, session_id)
    sent = orchestrator.send_welcome(session_id)
    return {"sent": sent, "session": dump_session(store.get_session(session_id))}


@router.post("/sessions/{session_id}/turns")
async def submit_turn(
    session_id: str,
    body: TurnBody,
    store: SessionStore = Depends(get_store),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    _require(store, session_id)
    result = await orchestrator.submit_turn(session_id, body.message)
    return {
        "result": result.model_dump(mode="json"),
        "session": dump_session(store.get_session(session_id)),
    }
