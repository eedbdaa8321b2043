"""Capture session state machine definitions."""

from enum import Enum


class CaptureState(str, Enum):
    """Lifecycle states of a capture session."""

    IDLE = "IDLE"
    READY = "READY"
    CAPTURING = "CAPTURING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


# Reset state reachable from any state (fatal error, disconnect, save)
RESET_STATE = CaptureState.IDLE

# Normal state transitions (RESET_STATE is always valid in addition to these)
STATE_TRANSITIONS: dict[CaptureState, list[CaptureState]] = {
    CaptureState.IDLE: [CaptureState.READY],
    CaptureState.READY: [CaptureState.CAPTURING],
    CaptureState.CAPTURING: [CaptureState.PAUSED, CaptureState.COMPLETED],
    CaptureState.PAUSED: [CaptureState.CAPTURING, CaptureState.COMPLETED],
    CaptureState.COMPLETED: [],
}

# States in which a capture loop may be running
LOOP_STATES = {CaptureState.CAPTURING, CaptureState.PAUSED}


def can_transition(current: CaptureState, target: CaptureState) -> bool:
    """Return True if *current* → *target* is a defined edge."""
    if target == RESET_STATE:
        return True
    return target in STATE_TRANSITIONS.get(current, [])
