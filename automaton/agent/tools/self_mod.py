"""Self-modification tools.

Every change made here is recorded as a ModificationRecord so the audit
log shows what the automaton did to itself and how to undo it.
"""

import difflib
from typing import Any

from croniter import croniter
from loguru import logger

from automaton.agent.tools.base import Tool, ToolContext
from automaton.agent.tools.filesystem import (
    DEFAULT_FILE_TIMEOUT,
    TIMEOUT_PARAM,
    guard_path,
    resolve_tool_path,
    run_file_op,
)
from automaton.agent.tools.shell import guard_command, run_shell
from automaton.errors import ToolExecutionError
from automaton.heartbeat.config import save_heartbeat_config
from automaton.state.types import HeartbeatEntry, HeartbeatTask, ModificationRecord
from automaton.utils.helpers import ensure_dir, truncate

MAX_DIFF_CHARS = 20000


def _replace_contents(file_path, content: str, path: str) -> str:
    """Write ``content`` and return the previous contents (empty for a new file)."""
    try:
        old = file_path.read_text(encoding="utf-8") if file_path.is_file() else ""
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except (PermissionError, UnicodeDecodeError) as e:
        raise ToolExecutionError(f"Cannot edit {path}: {e}")
    return old


class EditOwnFileTool(Tool):
    """Replace the contents of a file and audit the change with a diff."""

    category = "self_mod"
    dangerous = True

    def __init__(self, timeout: float = DEFAULT_FILE_TIMEOUT):
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "edit_own_file"

    @property
    def description(self) -> str:
        return (
            "Edit a file in your own codebase by writing its full new content. "
            "Changes are audited with a diff. State and identity files are protected."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path to edit"},
                "content": {"type": "string", "description": "New file content"},
                "description": {
                    "type": "string",
                    "description": "Why you are making this change",
                    "minLength": 1,
                },
                "timeout": TIMEOUT_PARAM,
            },
            "required": ["path", "content", "description"],
        }

    async def execute(
        self,
        ctx: ToolContext,
        path: str,
        content: str,
        description: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> str:
        file_path = resolve_tool_path(path, ctx.config.workspace_path)
        guard_path("edit", file_path, ctx.config)
        old = await run_file_op(
            _replace_contents, file_path, content, path, timeout=timeout or self.timeout
        )

        diff = "".join(
            difflib.unified_diff(
                old.splitlines(keepends=True),
                content.splitlines(keepends=True),
                fromfile=f"a/{file_path.name}",
                tofile=f"b/{file_path.name}",
            )
        )
        ctx.store.insert_modification(
            ModificationRecord(
                type="code_edit",
                description=f"{description}: {file_path}",
                diff=truncate(diff, MAX_DIFF_CHARS) if diff else None,
                reversible=True,
            )
        )
        logger.info(f"Self-edit of {file_path}: {description}")
        return f"File edited: {path} (audited)"


class InstallPackageTool(Tool):
    """Run a package install command and audit it."""

    category = "self_mod"

    def __init__(self, timeout: int = 120):
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "install_package"

    @property
    def description(self) -> str:
        return "Install a system or language package, e.g. 'pip install requests'."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "Install command, e.g. 'pip install requests'",
                    "minLength": 1,
                },
            },
            "required": ["command"],
        }

    async def execute(self, ctx: ToolContext, command: str, **kwargs: Any) -> str:
        cwd = str(ensure_dir(ctx.config.workspace_path))
        guard_command(command, cwd, ctx.config)
        result = await run_shell(command, cwd, self.timeout)
        ctx.store.insert_modification(
            ModificationRecord(
                type="package_install",
                description=f"Ran: {command} (exit {result.exit_code})",
                reversible=True,
            )
        )
        if result.exit_code != 0:
            raise ToolExecutionError(
                f"Install failed ({result.exit_code}): {truncate(result.stderr.strip(), 2000)}"
            )
        return f"Success: {command}"


class ModifyHeartbeatTool(Tool):
    """Add, reschedule or disable a heartbeat entry."""

    category = "self_mod"

    @property
    def name(self) -> str:
        return "modify_heartbeat"

    @property
    def description(self) -> str:
        return (
            "Add or update a heartbeat entry: a cron schedule that runs one of the "
            "built-in background tasks. Set enabled=false to pause it."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Entry name (unique)", "minLength": 1},
                "schedule": {"type": "string", "description": "Cron expression, e.g. '*/15 * * * *'"},
                "task": {
                    "type": "string",
                    "enum": [t.value for t in HeartbeatTask],
                    "description": "Background task to run",
                },
                "enabled": {"type": "boolean", "description": "Whether the entry is active"},
            },
            "required": ["name", "schedule", "task"],
        }

    async def execute(
        self,
        ctx: ToolContext,
        name: str,
        schedule: str,
        task: str,
        enabled: bool = True,
        **kwargs: Any,
    ) -> str:
        if not croniter.is_valid(schedule):
            raise ToolExecutionError(f"Invalid cron expression: {schedule!r}")

        entry = HeartbeatEntry(name=name, schedule=schedule, task=task, enabled=enabled)
        ctx.store.upsert_heartbeat_entry(entry)
        save_heartbeat_config(ctx.config.heartbeat_config_file, ctx.store.get_heartbeat_entries())
        ctx.store.insert_modification(
            ModificationRecord(
                type="heartbeat_change",
                description=f"Heartbeat {name}: {task} @ '{schedule}' ({'enabled' if enabled else 'disabled'})",
                reversible=True,
            )
        )
        return f"Heartbeat '{name}' set to run {task} on '{schedule}'" + ("" if enabled else " (disabled)")
