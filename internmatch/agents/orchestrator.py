"""Turn orchestrator: drives one user utterance through the assistant gateway.

A turn appends the user's message optimistically, calls the gateway, and then
applies the reply, phase and artifacts to the session. Responses that arrive
after the session was switched away from, deleted, or replaced are dropped
without touching any state.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ValidationError

from internmatch.errors import (
    AssistantError,
    GatewayReportedError,
    GatewayUnavailable,
    MalformedResponse,
)
from internmatch.gateway import AssistantGateway, HttpAssistantGateway
from internmatch.models.gateway import GatewayRequest, GatewayResponse, HistoryEntry
from internmatch.models.session import ChatMessage, ChatSession, MessageRole, UserType
from internmatch.phases import resolve_transition
from internmatch.session import SessionStore

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "I apologize, but I encountered an issue. Please try again or rephrase your message."
)

WELCOME_MESSAGES: dict[UserType, str] = {
    UserType.STUDENT: (
        "Hey there! I'm Linky, your AI Career Assistant here at LynkSkill!\n\n"
        "I'm here to help you build an awesome professional portfolio and find the "
        "perfect internship match for your skills and interests.\n\n"
        "Tell me about yourself - What's your name, what are you studying, and what "
        "kind of work excites you? The more you share, the better I can help you stand out!"
    ),
    UserType.COMPANY: (
        "Hello! I'm Linky, your AI Talent Scout here at LynkSkill! I'm here to help you "
        "find the perfect candidates for your team without manually creating job postings.\n\n"
        "Just describe what kind of talent you're looking for - the skills needed, the type "
        "of role, experience level, or any specific requirements. I'll search through our "
        "student database and find the best matches for you!\n\n"
        'Try something like: "I need a React developer" or '
        '"Looking for a design intern with Figma skills"'
    ),
}


class TurnOutcome(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"
    DISCARDED = "discarded"
    REJECTED_EMPTY = "rejected_empty"
    REJECTED_BUSY = "rejected_busy"
    UNKNOWN_SESSION = "unknown_session"
    INACTIVE_SESSION = "inactive_session"


class TurnResult(BaseModel):
    outcome: TurnOutcome
    session_id: str | None = None
    error_kind: str | None = None  # GatewayUnavailable, MalformedResponse, GatewayReportedError
    error: str | None = None


class GenerationToken(NamedTuple):
    session_id: str
    turn: int
    epoch: int


def parse_gateway_response(raw: Any) -> GatewayResponse:
    """Validate a raw gateway body into the fixed response shape.

    An ``error`` field wins over everything else in the body.
    """
    if not isinstance(raw, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(raw).__name__}")
    if raw.get("error") is not None:
        raise GatewayReportedError(str(raw["error"]))
    try:
        return GatewayResponse.model_validate(raw)
    except ValidationError as exc:
        raise MalformedResponse(f"Invalid gateway response: {exc.error_count()} errors") from exc


class TurnOrchestrator:
    def __init__(self, store: SessionStore, gateway: AssistantGateway | None = None):
        self.store = store
        self.gateway = gateway or HttpAssistantGateway()
        self._turns: dict[str, int] = {}
        self._in_flight: set[str] = set()

    def in_flight(self, session_id: str) -> bool:
        return session_id in self._in_flight

    def _issue_token(self, session_id: str) -> GenerationToken:
        turn = self._turns.get(session_id, 0) + 1
        self._turns[session_id] = turn
        return GenerationToken(session_id, turn, self.store.epoch(session_id))

    def is_current(self, token: GenerationToken) -> bool:
        """Whether a response for ``token`` may still touch its session."""
        return (
            self._turns.get(token.session_id) == token.turn
            and self.store.epoch(token.session_id) == token.epoch
            and self.store.is_active(token.session_id)
        )

    def send_welcome(self, session_id: str) -> bool:
        """Greet a fresh session. Only an empty transcript gets the welcome."""
        session = self.store.get_session(session_id)
        if session is None or session.messages:
            return False
        message = ChatMessage(
            role=MessageRole.ASSISTANT,
            content=WELCOME_MESSAGES[session.user_type],
            metadata={"type": "question"},
        )
        return self.store.append_message(session_id, message)

    async def submit_turn(
        self,
        session_id: str | None,
        utterance: str,
        user_type: UserType = UserType.STUDENT,
    ) -> TurnResult:
        """Run one turn against ``session_id`` (or the active session of ``user_type``).

        Never raises for gateway problems: failures end as a single fallback
        assistant message and a ``FAILED`` result.
        """
        text = utterance.strip()
        if not text:
            return TurnResult(outcome=TurnOutcome.REJECTED_EMPTY, session_id=session_id)

        if session_id is None:
            session = self.store.ensure_session(user_type)
        else:
            session = self.store.get_session(session_id)
            if session is None:
                return TurnResult(outcome=TurnOutcome.UNKNOWN_SESSION, session_id=session_id)
        if not self.store.is_active(session.id):
            logger.warning("Rejecting turn for inactive session %s", session.id)
            return TurnResult(outcome=TurnOutcome.INACTIVE_SESSION, session_id=session.id)
        if session.id in self._in_flight:
            logger.debug("Turn already in flight for session %s", session.id)
            return TurnResult(outcome=TurnOutcome.REJECTED_BUSY, session_id=session.id)

        self._in_flight.add(session.id)
        try:
            return await self._run_turn(session, text)
        finally:
            self._in_flight.discard(session.id)

    async def _run_turn(self, session: ChatSession, text: str) -> TurnResult:
        request = GatewayRequest(
            message=text,
            conversation_history=[
                HistoryEntry(role=m.role, content=m.content) for m in session.messages
            ],
            phase=session.phase,
            user_type=session.user_type,
        )
        self.store.append_message(session.id, ChatMessage(role=MessageRole.USER, content=text))
        token = self._issue_token(session.id)

        try:
            raw = await self.gateway.process_turn(request)
            response = parse_gateway_response(raw)
        except AssistantError as exc:
            return self._fail(token, exc)
        except Exception as exc:
            logger.exception("Gateway call crashed for session %s", session.id)
            return self._fail(token, GatewayUnavailable(str(exc)))

        if not self.is_current(token):
            logger.warning(
                "Discarding stale response for session %s (turn %d)", token.session_id, token.turn
            )
            self._forget_if_deleted(token.session_id)
            return TurnResult(outcome=TurnOutcome.DISCARDED, session_id=token.session_id)

        self._apply(token.session_id, response)
        return TurnResult(outcome=TurnOutcome.APPLIED, session_id=token.session_id)

    def _forget_if_deleted(self, session_id: str) -> None:
        if not self.store.has_session(session_id):
            self._turns.pop(session_id, None)

    def _apply(self, session_id: str, response: GatewayResponse) -> None:
        self.store.append_message(
            session_id,
            ChatMessage(
                role=MessageRole.ASSISTANT,
                content=response.reply,
                metadata=response.message_metadata(),
            ),
        )
        if response.phase is not None:
            current = self.store.get_session(session_id).phase
            target = resolve_transition(current, response.phase)
            if target != current:
                self.store.set_phase(session_id, target)
        if response.portfolio is not None:
            self.store.set_portfolio(session_id, response.portfolio.snapshot())
        if response.matches is not None:
            self.store.set_matches(session_id, response.matches)

    def _fail(self, token: GenerationToken, exc: AssistantError) -> TurnResult:
        kind = type(exc).__name__
        if isinstance(exc, GatewayReportedError):
            logger.error("Gateway reported an error for session %s: %s", token.session_id, exc.message)
        elif isinstance(exc, MalformedResponse):
            logger.error("Malformed gateway response for session %s: %s", token.session_id, exc)
        else:
            logger.error("Gateway unavailable for session %s: %s", token.session_id, exc)

        if not self.is_current(token):
            logger.warning("Dropping failure of stale turn for session %s", token.session_id)
            self._forget_if_deleted(token.session_id)
            return TurnResult(
                outcome=TurnOutcome.DISCARDED, session_id=token.session_id,
                error_kind=kind, error=str(exc),
            )
        self.store.append_message(
            token.session_id, ChatMessage(role=MessageRole.ASSISTANT, content=FALLBACK_REPLY)
        )
        return TurnResult(
            outcome=TurnOutcome.FAILED, session_id=token.session_id,
            error_kind=kind, error=str(exc),
        )
