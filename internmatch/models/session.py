from __future__ import annotations

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from internmatch.models.artifacts import MatchArtifact

_ALPHABET = "abcdefghjkmnpqrstuvwxyz23456789"

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id(length: int = 10) -> str:
    return "session_" + "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_message_id() -> str:
    return f"msg-{uuid4().hex[:16]}"


class SessionPhase(str, Enum):
    INTRO = "intro"
    GATHERING = "gathering"
    PORTFOLIO = "portfolio"
    MATCHING = "matching"
    RESULTS = "results"


class UserType(str, Enum):
    STUDENT = "student"
    COMPANY = "company"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    id: str = Field(default_factory=generate_message_id)
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] | None = None  # {"type": ..., "data": ...} echoed from the gateway

    model_config = {**_CAMEL, "frozen": True}


class ChatSession(BaseModel):
    id: str = Field(default_factory=generate_session_id)
    user_type: UserType
    name: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    phase: SessionPhase = SessionPhase.INTRO
    messages: list[ChatMessage] = Field(default_factory=list)
    portfolio: dict[str, Any] | None = None
    matches: list[MatchArtifact] | None = None

    model_config = _CAMEL

    @model_validator(mode="after")
    def _default_name(self) -> ChatSession:
        if not self.name:
            self.name = f"Chat {self.created_at:%Y-%m-%d %H:%M}"
        return self


class PartitionRecord(BaseModel):
    """Durable form of one user type's session collection."""

    sessions: list[ChatSession] = Field(default_factory=list)
    active_session_id: str | None = None

    model_config = _CAMEL

    @model_validator(mode="after")
    def _check_consistency(self) -> PartitionRecord:
        ids = [s.id for s in self.sessions]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate session ids in partition")
        if self.active_session_id not in ids:
            self.active_session_id = most_recent(self.sessions)
        return self


def most_recent(sessions: list[ChatSession]) -> str | None:
    """Id of the most recently created session; later insertion wins ties."""
    if not sessions:
        return None
    ranked = max(enumerate(sessions), key=lambda pair: (pair[1].created_at, pair[0]))
    return ranked[1].id
