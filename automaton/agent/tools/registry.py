"""Tool registry: catalog and safe dispatch."""

import time
from typing import Any

from loguru import logger

from automaton.agent.security.audit import audit
from automaton.agent.tools.base import Tool, ToolContext
from automaton.errors import (
    PolicyViolation,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)
from automaton.state.types import ToolCallResult

POLICY_BLOCK_PREFIX = "Blocked by safety policy:"


class ToolRegistry:
    """Registry for agent tools.

    ``execute`` never raises: unknown tools, invalid arguments, policy
    refusals and crashes all come back as a ToolCallResult with ``error`` set.
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        if tool.name in self._tools:
            logger.warning(f"Tool '{tool.name}' registered twice; replacing")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Unknown tool: {name}")
        return tool

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions in OpenAI format."""
        return [tool.to_schema() for tool in self._tools.values()]

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    async def execute(
        self,
        call_id: str,
        name: str,
        params: dict[str, Any],
        ctx: ToolContext,
    ) -> ToolCallResult:
        """Execute a tool by name and capture result-or-error with its duration."""
        try:
            tool = self.require(name)
        except ToolNotFoundError as e:
            logger.warning(str(e))
            return ToolCallResult(id=call_id, name=name, arguments=params, error=str(e), duration_ms=0)

        start = time.perf_counter()
        result = ""
        error: str | None = None
        try:
            errors = tool.validate_params(params)
            if errors:
                raise ToolValidationError(f"Invalid parameters for {name}: {'; '.join(errors)}")
            result = await tool.execute(ctx, **params)
        except ToolValidationError as e:
            error = f"Error: {e}"
        except PolicyViolation as e:
            error = f"{POLICY_BLOCK_PREFIX} {e}"
            logger.warning(f"Tool {name} refused by safety policy: {e}")
        except ToolExecutionError as e:
            error = f"Error: {e}"
        except Exception as e:
            error = f"Error executing {name}: {type(e).__name__}: {e}"
            logger.error(f"Tool {name} failed: {e}")

        duration_ms = int((time.perf_counter() - start) * 1000)
        audit.log_tool_exec(name, params, success=error is None, duration_ms=duration_ms)
        return ToolCallResult(
            id=call_id,
            name=name,
            arguments=params,
            result=result if error is None else "",
            error=error,
            duration_ms=duration_ms,
        )

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
