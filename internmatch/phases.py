"""Phase state machine for a session's guided dialogue.

Phases only move forward along ``PHASE_ORDER``. The gateway is the sole
authority for advancing; a proposal is accepted when it does not move the
session backwards. Skipping ahead is allowed.
"""

from __future__ import annotations

import logging

from internmatch.models.session import SessionPhase

logger = logging.getLogger(__name__)

PHASE_ORDER: tuple[SessionPhase, ...] = (
    SessionPhase.INTRO,
    SessionPhase.GATHERING,
    SessionPhase.PORTFOLIO,
    SessionPhase.MATCHING,
    SessionPhase.RESULTS,
)

INITIAL_PHASE = SessionPhase.INTRO


def phase_rank(phase: SessionPhase) -> int:
    return PHASE_ORDER.index(phase)


def can_transition(current: SessionPhase, target: SessionPhase) -> bool:
    return phase_rank(target) >= phase_rank(current)


def resolve_transition(current: SessionPhase, proposed: SessionPhase | None) -> SessionPhase:
    """Return the phase a session should be in after a gateway proposal."""
    if proposed is None:
        return current
    if not can_transition(current, proposed):
        logger.warning(
            "Ignoring backward phase proposal %s -> %s", current.value, proposed.value
        )
        return current
    return proposed
