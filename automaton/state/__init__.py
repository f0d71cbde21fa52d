"""Persisted state.

`state.types` is a stable contract (Pydantic models).
Storage lives in `state.database`.
"""

from automaton.state.database import StateStore
from automaton.state.types import (
    AgentState,
    HeartbeatEntry,
    HeartbeatTask,
    ModificationRecord,
    TokenUsage,
    ToolCallResult,
    TurnRecord,
)

__all__ = [
    "StateStore",
    "AgentState",
    "HeartbeatEntry",
    "HeartbeatTask",
    "ModificationRecord",
    "TokenUsage",
    "ToolCallResult",
    "TurnRecord",
]
