"""LLM provider abstraction module."""

from automaton.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from automaton.providers.litellm_provider import LiteLLMProvider, create_provider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider", "create_provider"]
