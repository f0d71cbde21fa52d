"""Reasoning service contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCallRequest:
    """A tool call request from the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str | None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)
    model: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


class LLMProvider(ABC):
    """
    Base class for reasoning service clients.

    ``chat`` raises InferenceCallError on any transport or service failure;
    errors are never returned as content.
    """

    def __init__(
        self,
        default_model: str,
        low_compute_model: str | None = None,
    ):
        self.default_model = default_model
        self.low_compute_model = low_compute_model or default_model
        self._low_compute = False

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """Send the conversation (and optional tool catalog) to the model."""

    @property
    def supports_tools(self) -> bool:
        """False for plain-completion backends; the loop then runs a single round."""
        return True

    @property
    def low_compute(self) -> bool:
        return self._low_compute

    def set_low_compute_mode(self, enabled: bool) -> None:
        self._low_compute = enabled

    def get_default_model(self) -> str:
        """Model used when ``chat`` is called without an override."""
        return self.low_compute_model if self._low_compute else self.default_model
