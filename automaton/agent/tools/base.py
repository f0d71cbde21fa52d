"""Base class for agent tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from automaton.config.schema import Config
    from automaton.identity import AutomatonIdentity
    from automaton.providers.base import LLMProvider
    from automaton.state.database import StateStore
    from automaton.survival.funding import FundingSource

ToolCategory = Literal["local", "survival", "financial", "self_mod"]


@dataclass
class ToolContext:
    """Everything a tool may touch while executing."""

    identity: "AutomatonIdentity"
    config: "Config"
    store: "StateStore"
    provider: "LLMProvider | None" = None
    funding: "FundingSource | None" = None


class Tool(ABC):
    """
    Abstract base class for agent tools.

    A tool declares a name, description, category and a JSON-schema for its
    parameters, and implements ``execute``. Expected failures raise
    ToolExecutionError (shown to the model as ``"Error: ..."``), safety
    refusals raise PolicyViolation. The registry captures anything raised.
    """

    _TYPE_MAP = {
        "string": str,
        "integer": int,
        "number": (int, float),
        "boolean": bool,
        "array": list,
        "object": dict,
    }

    category: ToolCategory = "local"
    dangerous: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name used in function calls."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of what the tool does."""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""

    @abstractmethod
    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        """
        Execute the tool with validated parameters.

        Args:
            ctx: Capability context (identity, config, store, ...).
            **kwargs: Tool-specific parameters.

        Returns:
            String result of the tool execution.
        """

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Validate tool parameters against the JSON schema. Returns error list."""
        schema = self.parameters or {}
        if schema.get("type", "object") != "object":
            raise ValueError(f"Schema must be object type, got {schema.get('type')!r}")
        return self._validate(params, {**schema, "type": "object"}, "")

    def _validate(self, val: Any, schema: dict[str, Any], path: str) -> list[str]:
        t, label = schema.get("type"), path or "parameter"
        expected = self._TYPE_MAP.get(t)
        # bool is an int subclass; never accept it for numeric fields
        if expected is not None and (
            not isinstance(val, expected) or (t in ("integer", "number") and isinstance(val, bool))
        ):
            return [f"{label} should be {t}"]

        errors: list[str] = []
        if "enum" in schema and val not in schema["enum"]:
            errors.append(f"{label} must be one of {schema['enum']}")
        if t in ("integer", "number"):
            if "minimum" in schema and val < schema["minimum"]:
                errors.append(f"{label} must be >= {schema['minimum']}")
            if "maximum" in schema and val > schema["maximum"]:
                errors.append(f"{label} must be <= {schema['maximum']}")
        if t == "string":
            if "minLength" in schema and len(val) < schema["minLength"]:
                errors.append(f"{label} must be at least {schema['minLength']} chars")
            if "maxLength" in schema and len(val) > schema["maxLength"]:
                errors.append(f"{label} must be at most {schema['maxLength']} chars")
        if t == "object":
            props = schema.get("properties", {})
            for key in schema.get("required", []):
                if key not in val:
                    errors.append(f"missing required {path + '.' + key if path else key}")
            for key, item in val.items():
                if key in props:
                    errors.extend(self._validate(item, props[key], path + "." + key if path else key))
        if t == "array" and "items" in schema:
            for i, item in enumerate(val):
                errors.extend(
                    self._validate(item, schema["items"], f"{path}[{i}]" if path else f"[{i}]")
                )
        return errors

    def to_schema(self) -> dict[str, Any]:
        """Convert tool to OpenAI function schema format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
