"""Wire shapes exchanged with the assistant gateway."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from internmatch.models.artifacts import MatchArtifact, Portfolio
from internmatch.models.session import MessageRole, SessionPhase, UserType

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class HistoryEntry(BaseModel):
    role: MessageRole
    content: str


class GatewayRequest(BaseModel):
    message: str
    conversation_history: list[HistoryEntry] = Field(default_factory=list)
    phase: SessionPhase
    user_type: UserType

    model_config = _CAMEL

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class GatewayResponse(BaseModel):
    reply: str
    type: str | None = None
    data: Any = None
    phase: SessionPhase | None = None
    portfolio: Portfolio | None = None
    matches: list[MatchArtifact] | None = None

    model_config = {**_CAMEL, "extra": "ignore"}

    def message_metadata(self) -> dict[str, Any] | None:
        if self.type is None and self.data is None:
            return None
        return {"type": self.type, "data": self.data}
