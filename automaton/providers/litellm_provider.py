"""LiteLLM provider implementation for multi-provider support."""

import json
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from automaton.errors import InferenceCallError
from automaton.providers.base import LLMProvider, LLMResponse, ToolCallRequest


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM.

    Any model string LiteLLM understands works here (``anthropic/...``,
    ``openai/...``, ``openrouter/...``, a hosted vLLM endpoint via
    ``api_base``).
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-opus-4-5",
        low_compute_model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(default_model, low_compute_model)
        self.api_key = api_key
        self.api_base = api_base
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.extra_headers = extra_headers or {}

        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers (e.g., gpt-5 rejects some params)
        litellm.drop_params = True

    def set_low_compute_mode(self, enabled: bool) -> None:
        if enabled != self.low_compute:
            logger.info(f"Inference model switched (low_compute={enabled})")
        super().set_low_compute_mode(enabled)

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            tools: Optional list of tool definitions in OpenAI format.
            model: Model identifier; defaults to the tier-appropriate model.

        Returns:
            LLMResponse with content and/or tool calls.

        Raises:
            InferenceCallError: the request failed for any reason.
        """
        model = model or self.get_default_model()
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            raise InferenceCallError(f"Inference failed ({model}): {e}") from e
        return self._parse_response(response, model)

    def _parse_response(self, response: Any, model: str) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        try:
            choice = response.choices[0]
        except (AttributeError, IndexError) as e:
            raise InferenceCallError(f"Malformed inference response: {e}") from e
        message = choice.message

        tool_calls = []
        if getattr(message, "tool_calls", None):
            for tc in message.tool_calls:
                args = tc.function.arguments
                if isinstance(args, str):
                    try:
                        args = json.loads(args) if args else {}
                    except json.JSONDecodeError:
                        args = {"raw": args}
                tool_calls.append(ToolCallRequest(id=tc.id, name=tc.function.name, arguments=args))

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
            model=getattr(response, "model", None) or model,
        )


def create_provider(config) -> LiteLLMProvider:
    """Build the provider described by ``config.inference``."""
    inf = config.inference
    return LiteLLMProvider(
        api_key=inf.api_key or None,
        api_base=inf.api_base,
        default_model=inf.model,
        low_compute_model=inf.low_compute_model,
        max_tokens=inf.max_tokens_per_turn,
        temperature=inf.temperature,
    )
