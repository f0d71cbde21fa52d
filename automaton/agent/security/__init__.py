"""Safety policy and audit logging for tool execution."""

from automaton.agent.security.audit import SecurityAudit, audit, redact_for_logging, sanitize_log_input
from automaton.agent.security.guard import (
    PROTECTED_FILES,
    check_forbidden_command,
    is_protected_path,
)

__all__ = [
    "PROTECTED_FILES",
    "SecurityAudit",
    "audit",
    "check_forbidden_command",
    "is_protected_path",
    "redact_for_logging",
    "sanitize_log_input",
]
