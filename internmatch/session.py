from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from pydantic import ValidationError

from internmatch.errors import PersistenceUnavailable, StoreError, UnknownSessionReference
from internmatch.models.artifacts import MatchArtifact
from internmatch.models.session import (
    ChatMessage,
    ChatSession,
    PartitionRecord,
    SessionPhase,
    UserType,
    most_recent,
)
from internmatch.phases import INITIAL_PHASE, can_transition
from internmatch.storage import JsonFileStorage, PartitionStorage

logger = logging.getLogger(__name__)


class SessionStore:
    """Owns every session of every user type plus one active pointer per user type.

    Each mutation is a read-modify-persist cycle over the whole partition of
    the affected user type. Conditions (unknown ids, storage failures) never
    raise; they are logged and left on ``last_error`` for the caller, and the
    in-memory state stays authoritative.
    """

    def __init__(self, storage: PartitionStorage | None = None):
        self.storage = storage or JsonFileStorage()
        self.last_error: StoreError | None = None
        self._partitions: dict[UserType, PartitionRecord] = {}
        # Bumped whenever a session stops being active; turn tokens capture it.
        self._epochs: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Partition loading and flushing
    # ------------------------------------------------------------------

    def _partition(self, user_type: UserType) -> PartitionRecord:
        record = self._partitions.get(user_type)
        if record is None:
            record = self._read_partition(user_type)
            self._partitions[user_type] = record
        return record

    def _read_partition(self, user_type: UserType) -> PartitionRecord:
        try:
            raw = self.storage.read(user_type)
        except PersistenceUnavailable as exc:
            logger.warning("Could not read %s sessions, starting empty: %s", user_type.value, exc)
            self.last_error = exc
            return PartitionRecord()
        if raw is None:
            return PartitionRecord()
        try:
            record = PartitionRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Discarding unreadable %s partition (%d errors)", user_type.value, exc.error_count()
            )
            return PartitionRecord()
        if any(s.user_type != user_type for s in record.sessions):
            logger.warning("Discarding %s partition holding foreign sessions", user_type.value)
            return PartitionRecord()
        logger.info("Loaded %d %s sessions", len(record.sessions), user_type.value)
        return record

    def _persist(self, user_type: UserType) -> bool:
        record = self._partitions[user_type]
        try:
            self.storage.write(user_type, record.model_dump_json(by_alias=True))
        except PersistenceUnavailable as exc:
            logger.warning("Persisting %s sessions failed: %s", user_type.value, exc)
            self.last_error = exc
            return False
        return True

    def export_partition(self, user_type: UserType) -> str:
        """Serialized partition exactly as it is written to storage."""
        return self._partition(user_type).model_dump_json(by_alias=True)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _locate(self, session_id: str) -> tuple[UserType, ChatSession] | None:
        for user_type in UserType:
            for session in self._partition(user_type).sessions:
                if session.id == session_id:
                    return user_type, session
        return None

    def _report_unknown(self, session_id: str) -> None:
        logger.warning("Unknown session reference: %s", session_id)
        self.last_error = UnknownSessionReference(session_id)

    def list_sessions(self, user_type: UserType) -> list[ChatSession]:
        """Sessions of ``user_type``, newest first."""
        self.last_error = None
        sessions = self._partition(user_type).sessions
        ranked = sorted(
            enumerate(sessions), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True
        )
        return [s.model_copy(deep=True) for _, s in ranked]

    def get_session(self, session_id: str) -> ChatSession | None:
        self.last_error = None
        found = self._locate(session_id)
        if found is None:
            self._report_unknown(session_id)
            return None
        return found[1].model_copy(deep=True)

    def active_session_id(self, user_type: UserType) -> str | None:
        return self._partition(user_type).active_session_id

    def active_session(self, user_type: UserType) -> ChatSession | None:
        active_id = self.active_session_id(user_type)
        return self.get_session(active_id) if active_id else None

    def is_active(self, session_id: str) -> bool:
        found = self._locate(session_id)
        if found is None:
            return False
        return self._partition(found[0]).active_session_id == session_id

    def has_session(self, session_id: str) -> bool:
        return self._locate(session_id) is not None

    def epoch(self, session_id: str) -> int:
        return self._epochs.get(session_id, 0)

    def _retire(self, session_id: str | None) -> None:
        if session_id is not None:
            self._epochs[session_id] = self.epoch(session_id) + 1

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_new_session(self, user_type: UserType) -> ChatSession:
        self.last_error = None
        record = self._partition(user_type)
        session = ChatSession(user_type=user_type, phase=INITIAL_PHASE)
        self._retire(record.active_session_id)
        record.sessions.append(session)
        record.active_session_id = session.id
        self._persist(user_type)
        logger.info("Started %s session %s", user_type.value, session.id)
        return session.model_copy(deep=True)

    def ensure_session(self, user_type: UserType) -> ChatSession:
        """Return the active session of ``user_type``, starting one if there is none."""
        session = self.active_session(user_type)
        if session is not None:
            return session
        return self.start_new_session(user_type)

    def load_session(self, session_id: str, user_type: UserType | None = None) -> bool:
        """Make ``session_id`` the active session of its user type."""
        self.last_error = None
        found = self._locate(session_id)
        if found is None or (user_type is not None and found[0] != user_type):
            self._report_unknown(session_id)
            return False
        owner, _ = found
        record = self._partition(owner)
        if record.active_session_id != session_id:
            self._retire(record.active_session_id)
            record.active_session_id = session_id
            self._persist(owner)
            logger.info("Switched %s session to %s", owner.value, session_id)
        return True

    def delete_session(self, session_id: str) -> bool:
        self.last_error = None
        found = self._locate(session_id)
        if found is None:
            self._report_unknown(session_id)
            return False
        owner, session = found
        record = self._partition(owner)
        record.sessions.remove(session)
        self._epochs.pop(session_id, None)
        if record.active_session_id == session_id:
            record.active_session_id = most_recent(record.sessions)
        self._persist(owner)
        logger.info("Deleted %s session %s", owner.value, session_id)
        return True

    # ------------------------------------------------------------------
    # Targeted mutators
    # ------------------------------------------------------------------

    def _mutate(self, session_id: str, apply: Callable[[ChatSession], bool]) -> bool:
        self.last_error = None
        found = self._locate(session_id)
        if found is None:
            self._report_unknown(session_id)
            return False
        owner, session = found
        if not apply(session):
            return False
        self._persist(owner)
        return True

    def rename_session(self, session_id: str, name: str) -> bool:
        name = name.strip()
        if not name:
            self.last_error = None
            return False

        def apply(session: ChatSession) -> bool:
            session.name = name
            return True

        return self._mutate(session_id, apply)

    def append_message(self, session_id: str, message: ChatMessage) -> bool:
        def apply(session: ChatSession) -> bool:
            session.messages.append(message)
            return True

        return self._mutate(session_id, apply)

    def set_phase(self, session_id: str, phase: SessionPhase) -> bool:
        def apply(session: ChatSession) -> bool:
            if not can_transition(session.phase, phase):
                logger.warning(
                    "Refusing to move session %s back from %s to %s",
                    session_id, session.phase.value, phase.value,
                )
                return False
            session.phase = phase
            return True

        return self._mutate(session_id, apply)

    def set_portfolio(self, session_id: str, portfolio: dict[str, Any] | None) -> bool:
        snapshot = copy.deepcopy(portfolio)

        def apply(session: ChatSession) -> bool:
            session.portfolio = snapshot
            return True

        return self._mutate(session_id, apply)

    def set_matches(self, session_id: str, matches: list[MatchArtifact] | None) -> bool:
        snapshot = [m.model_copy(deep=True) for m in matches] if matches is not None else None

        def apply(session: ChatSession) -> bool:
            session.matches = snapshot
            return True

        return self._mutate(session_id, apply)
