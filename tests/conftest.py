from __future__ import annotations

import asyncio
from typing import Any

import pytest

from internmatch.agents.orchestrator import TurnOrchestrator
from internmatch.errors import PersistenceUnavailable
from internmatch.gateway import AssistantGateway
from internmatch.models.gateway import GatewayRequest
from internmatch.models.session import UserType
from internmatch.session import SessionStore
from internmatch.storage import MemoryStorage


class ScriptedGateway(AssistantGateway):
    """Gateway double answering calls from a script, optionally held back per call."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.requests: list[GatewayRequest] = []
        self._gates: dict[int, asyncio.Event] = {}

    def hold(self, call_index: int) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[call_index] = gate
        return gate

    async def wait_for_calls(self, count: int) -> None:
        while len(self.requests) < count:
            await asyncio.sleep(0)

    async def process_turn(self, request: GatewayRequest) -> Any:
        index = len(self.requests)
        self.requests.append(request)
        gate = self._gates.get(index)
        if gate is not None:
            await gate.wait()
        item = self.responses[index]
        if isinstance(item, BaseException):
            raise item
        return item


class FailingStorage(MemoryStorage):
    """Reads fine, refuses every write."""

    def write(self, user_type: UserType, payload: str) -> None:
        raise PersistenceUnavailable("quota exceeded")


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage) -> SessionStore:
    return SessionStore(storage)


def make_orchestrator(store: SessionStore, *responses: Any) -> tuple[TurnOrchestrator, ScriptedGateway]:
    gateway = ScriptedGateway(*responses)
    return TurnOrchestrator(store, gateway), gateway
