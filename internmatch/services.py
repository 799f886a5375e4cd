"""Process-wide session store and orchestrator shared by the HTTP surfaces."""

from __future__ import annotations

from fastapi import Depends

from internmatch.agents.orchestrator import TurnOrchestrator
from internmatch.session import SessionStore

_store: SessionStore | None = None
_orchestrator: TurnOrchestrator | None = None


def get_store() -> SessionStore:
    global _store
    if _store is None:
        _store = SessionStore()
    return _store


def get_orchestrator(store: SessionStore = Depends(get_store)) -> TurnOrchestrator:
    global _orchestrator
    if _orchestrator is None or _orchestrator.store is not store:
        _orchestrator = TurnOrchestrator(store)
    return _orchestrator
