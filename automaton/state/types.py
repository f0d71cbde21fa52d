"""Persisted state types (Pydantic models)."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from automaton.utils.helpers import new_id, now_iso


class AgentState(str, Enum):
    """Scheduling/funding state of the automaton."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    LOW_COMPUTE = "low_compute"
    CRITICAL = "critical"
    DEAD = "dead"


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, usage: dict[str, int] | None) -> "TokenUsage":
        usage = usage or {}
        return cls(
            prompt_tokens=usage.get("prompt_tokens", 0) or 0,
            completion_tokens=usage.get("completion_tokens", 0) or 0,
            total_tokens=usage.get("total_tokens", 0) or 0,
        )


class ToolCallResult(BaseModel):
    """Outcome of one dispatched tool invocation.

    Exactly one of ``result`` / ``error`` carries the outcome.
    """

    model_config = {"frozen": True}

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: str = ""
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def observation(self) -> str:
        """Text fed back to the model for this call."""
        return self.error if self.error is not None else self.result


class TurnRecord(BaseModel):
    """One reasoning/action round. Immutable once written."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=new_id)
    timestamp: str = Field(default_factory=now_iso)
    thinking: str = ""
    tool_calls: list[ToolCallResult] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    input_source: Literal["self", "heartbeat", "creator", "external"] | None = "self"


class ModificationRecord(BaseModel):
    """Audit entry for a self-modifying action."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=new_id)
    timestamp: str = Field(default_factory=now_iso)
    type: Literal["code_edit", "package_install", "heartbeat_change", "config_change"]
    description: str
    diff: str | None = None
    reversible: bool = True


class HeartbeatTask(str, Enum):
    HEALTH_CHECK = "health_check"
    CREDIT_MONITOR = "credit_monitor"
    STATUS_PING = "status_ping"


class HeartbeatEntry(BaseModel):
    """A named scheduled heartbeat task."""

    name: str = Field(min_length=1)
    schedule: str  # cron expression, e.g. "*/5 * * * *"
    task: str
    enabled: bool = True
