"""Agent core module.

Keep this package import-light: `import automaton.agent.tools` must not pull
in the loop (and with it the provider stack). Public symbols are exposed
via lazy imports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = ["AgentLoop", "ContextBuilder"]

if TYPE_CHECKING:
    from automaton.agent.context import ContextBuilder as ContextBuilder
    from automaton.agent.loop import AgentLoop as AgentLoop


def __getattr__(name: str) -> Any:
    if name == "AgentLoop":
        from automaton.agent.loop import AgentLoop

        return AgentLoop
    if name == "ContextBuilder":
        from automaton.agent.context import ContextBuilder

        return ContextBuilder
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
