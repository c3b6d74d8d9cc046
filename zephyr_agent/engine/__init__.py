"""
Build lifecycle engine.
"""

from .once import OnceCell, OnceState
from .lifecycle import EngineEvent, EngineState, EngineStateError, can_transition
from .engine import EngineOptions, ZephyrEngine

__all__ = [
    "OnceCell",
    "OnceState",
    "EngineEvent",
    "EngineState",
    "EngineStateError",
    "can_transition",
    "EngineOptions",
    "ZephyrEngine",
]
