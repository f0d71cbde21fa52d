"""Shared error types for automaton.

Goal: don't silently turn infrastructure failures into model "content".
Inference/tool failures should be explicit and handled at the right layer.
"""


class AutomatonError(Exception):
    """Base error for automaton."""


class ConfigError(AutomatonError):
    """Configuration file is unreadable or invalid."""


class InferenceCallError(AutomatonError):
    """Reasoning service call failed (network/auth/model/etc.)."""


class ToolNotFoundError(AutomatonError):
    """Tool name requested by the model isn't registered."""


class ToolValidationError(AutomatonError):
    """Tool arguments failed schema validation."""


class ToolExecutionError(AutomatonError):
    """Tool threw while executing."""


class PolicyViolation(AutomatonError):
    """Tool invocation refused by the self-preservation safety policy."""


class StateStoreError(AutomatonError):
    """The persisted state store is unreachable. Not recoverable."""
