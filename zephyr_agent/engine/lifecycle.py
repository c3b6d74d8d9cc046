"""
Engine lifecycle states and events.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional
import time


class EngineState(Enum):
    """Lifecycle states of one build."""
    CREATED = "created"
    BUILD_STARTED = "build_started"
    DEPENDENCIES_RESOLVED = "dependencies_resolved"
    ASSETS_UPLOADED = "assets_uploaded"
    FINISHED = "finished"
    ERRORED = "errored"


TERMINAL_STATES: FrozenSet[EngineState] = frozenset({EngineState.FINISHED, EngineState.ERRORED})

TRANSITIONS: Dict[EngineState, FrozenSet[EngineState]] = {
    EngineState.CREATED: frozenset({EngineState.BUILD_STARTED, EngineState.FINISHED, EngineState.ERRORED}),
    EngineState.BUILD_STARTED: frozenset({
        EngineState.DEPENDENCIES_RESOLVED,
        EngineState.ASSETS_UPLOADED,
        EngineState.FINISHED,
        EngineState.ERRORED,
    }),
    EngineState.DEPENDENCIES_RESOLVED: frozenset({
        EngineState.ASSETS_UPLOADED,
        EngineState.FINISHED,
        EngineState.ERRORED,
    }),
    EngineState.ASSETS_UPLOADED: frozenset({EngineState.FINISHED, EngineState.ERRORED}),
    EngineState.FINISHED: frozenset(),
    EngineState.ERRORED: frozenset(),
}


@dataclass
class EngineEvent:
    """Event emitted on every lifecycle transition."""
    state: EngineState
    application_uid: Optional[str] = None
    message: Optional[str] = None
    error: Optional[Exception] = None
    timestamp: float = field(default_factory=time.time)


class EngineStateError(Exception):
    """Raised on a transition the lifecycle does not allow."""

    def __init__(self, current: EngineState, target: EngineState):
        super().__init__(f"Cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


def can_transition(current: EngineState, target: EngineState) -> bool:
    return target in TRANSITIONS[current]
