"""Error taxonomy for the assistant session manager.

Gateway errors are recovered inside the turn orchestrator and store errors
inside the session store; neither family propagates past those boundaries.
"""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for failures of a single assistant turn."""


class GatewayUnavailable(AssistantError):
    """Raised when the assistant gateway cannot be reached or answers garbage."""


class MalformedResponse(AssistantError):
    """Raised when a gateway response lacks a reply or has an invalid shape."""


class GatewayReportedError(AssistantError):
    """Raised when the gateway response carries an explicit ``error`` field."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreError(Exception):
    """Base class for conditions reported by the session store."""


class PersistenceUnavailable(StoreError):
    """Raised by storage backends when a partition cannot be read or written."""


class UnknownSessionReference(StoreError):
    """An operation referenced a session id that is not in the store."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id
