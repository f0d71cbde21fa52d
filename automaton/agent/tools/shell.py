"""Shell execution tool with self-preservation guard.

Every command is screened against the deny-list in
``automaton.agent.security.guard`` before a process is spawned. Blocked
commands raise PolicyViolation; timeouts raise ToolExecutionError. Neither
ever escapes the registry.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Any

from loguru import logger

from automaton.agent.security.audit import audit
from automaton.agent.security.guard import check_command_for_config, check_forbidden_command
from automaton.agent.tools.base import Tool, ToolContext
from automaton.config.schema import Config
from automaton.errors import PolicyViolation, ToolExecutionError
from automaton.utils.helpers import ensure_dir, truncate

MAX_COMMAND_CHARS = 2000


@dataclass
class ShellResult:
    exit_code: int
    stdout: str
    stderr: str

    def render(self, max_chars: int = 10000) -> str:
        output_parts = []
        if self.stdout:
            output_parts.append(self.stdout)
        if self.stderr.strip():
            output_parts.append(f"STDERR:\n{self.stderr}")
        output_parts.append(f"Exit code: {self.exit_code}")
        return truncate("\n".join(output_parts), max_chars)


def guard_command(command: str, cwd: str, config: Config | None = None) -> None:
    """Raise PolicyViolation if ``command`` is on the deny-list.

    With ``config`` the configured state, config and heartbeat files and the
    automaton home are protected at their actual locations.
    """
    if config is not None:
        reason = check_command_for_config(command, config)
    else:
        reason = check_forbidden_command(command)
    if reason:
        audit.log_shell_cmd(command, cwd, blocked=True, reason=reason)
        raise PolicyViolation(reason)


async def run_shell(command: str, cwd: str, timeout: float) -> ShellResult:
    """Run ``command`` through the shell and collect its output.

    Raises ToolExecutionError when the command exceeds ``timeout``; the
    process is killed first.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        audit.log_shell_cmd(command, cwd, exit_code=-9)
        raise ToolExecutionError(f"Command timed out after {timeout:g} seconds")

    result = ShellResult(
        exit_code=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    audit.log_shell_cmd(command, cwd, exit_code=result.exit_code)
    return result


class ExecTool(Tool):
    """Execute shell commands in the automaton's workspace."""

    category = "local"

    def __init__(self, timeout: int = 30, max_output_chars: int = 10000):
        self.timeout = timeout
        self.max_output_chars = max_output_chars

    @property
    def name(self) -> str:
        return "exec"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command on your machine. Returns stdout, stderr and exit code. "
            "Commands that would harm your own state or process are refused."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                    "minLength": 1,
                },
                "cwd": {
                    "type": "string",
                    "description": "Working directory (defaults to the workspace)",
                },
                "timeout": {
                    "type": "number",
                    "description": "Timeout in seconds",
                    "minimum": 1,
                    "maximum": 600,
                },
            },
            "required": ["command"],
        }

    async def execute(
        self,
        ctx: ToolContext,
        command: str,
        cwd: str | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> str:
        command = command.strip()
        if not command:
            raise ToolExecutionError("Empty command")
        if len(command) > MAX_COMMAND_CHARS:
            raise ToolExecutionError(f"Command too long (max {MAX_COMMAND_CHARS} characters)")

        workdir = os.path.expanduser(cwd) if cwd else str(ensure_dir(ctx.config.workspace_path))
        guard_command(command, workdir, ctx.config)
        if not os.path.isdir(workdir):
            raise ToolExecutionError(f"Working directory not found: {workdir}")

        logger.debug(f"exec: {command[:100]}{'...' if len(command) > 100 else ''}")
        result = await run_shell(command, workdir, timeout or self.timeout)
        return result.render(self.max_output_chars)
