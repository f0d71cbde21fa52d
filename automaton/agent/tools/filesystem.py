"""File system tools: read, write, list, delete."""

import asyncio
from pathlib import Path
from typing import Any, Callable, TypeVar

from automaton.agent.security.audit import audit
from automaton.agent.security.guard import is_protected_path, protected_paths
from automaton.agent.tools.base import Tool, ToolContext
from automaton.config.schema import Config
from automaton.errors import PolicyViolation, ToolExecutionError

MAX_READ_CHARS = 50000
DEFAULT_FILE_TIMEOUT = 10.0

T = TypeVar("T")

TIMEOUT_PARAM: dict[str, Any] = {
    "type": "number",
    "description": "Timeout in seconds",
    "minimum": 0.01,
    "maximum": 600,
}


def resolve_tool_path(path_str: str, workspace: Path) -> Path:
    """Resolve ``path_str``; relative paths are taken from the workspace."""
    if not path_str or not path_str.strip():
        raise ToolExecutionError("Empty path is not allowed")
    if "\x00" in path_str:
        raise ToolExecutionError("Invalid characters in path")
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        path = workspace / path
    return path.resolve()


def guard_path(op: str, path: Path, config: Config) -> None:
    """Raise PolicyViolation if ``path`` is a protected state or identity file."""
    if is_protected_path(path, protected_paths(config)):
        reason = f"{path.name} is a protected state/identity file"
        audit.log_file_access(op, str(path), blocked=True, reason=reason)
        raise PolicyViolation(f"Cannot {op} {path}: {reason}")


async def run_file_op(fn: Callable[..., T], *args: Any, timeout: float) -> T:
    """Run blocking file I/O in a worker thread, bounded by ``timeout``.

    Raises ToolExecutionError when the deadline passes. The worker thread
    cannot be interrupted and finishes in the background.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
    except asyncio.TimeoutError:
        raise ToolExecutionError(f"File operation timed out after {timeout:g} seconds")


def _read(file_path: Path, path: str) -> str:
    if not file_path.exists():
        raise ToolExecutionError(f"File not found: {path}")
    if not file_path.is_file():
        raise ToolExecutionError(f"Not a file: {path}")
    try:
        return file_path.read_text(encoding="utf-8", errors="replace")
    except PermissionError:
        raise ToolExecutionError(f"Permission denied: {path}")


def _write(file_path: Path, content: str, path: str) -> None:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except PermissionError:
        raise ToolExecutionError(f"Permission denied: {path}")


def _list(dir_path: Path, path: str) -> list[str]:
    if not dir_path.exists():
        raise ToolExecutionError(f"Directory not found: {path}")
    if not dir_path.is_dir():
        raise ToolExecutionError(f"Not a directory: {path}")
    return [
        f"{'📁 ' if item.is_dir() else '📄 '}{item.name}"
        for item in sorted(dir_path.iterdir())
    ]


def _delete(file_path: Path, path: str) -> None:
    if not file_path.exists():
        raise ToolExecutionError(f"File not found: {path}")
    if not file_path.is_file():
        raise ToolExecutionError(f"Not a file: {path}")
    try:
        file_path.unlink()
    except PermissionError:
        raise ToolExecutionError(f"Permission denied: {path}")


class _FileTool(Tool):
    """Shared timeout handling for the file tools."""

    def __init__(self, timeout: float = DEFAULT_FILE_TIMEOUT):
        self.timeout = timeout

    def _timeout(self, requested: float | None) -> float:
        return requested or self.timeout


class ReadFileTool(_FileTool):
    """Tool to read file contents."""

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read the contents of a file at the given path."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to read"},
                "timeout": TIMEOUT_PARAM,
            },
            "required": ["path"],
        }

    async def execute(
        self, ctx: ToolContext, path: str, timeout: float | None = None, **kwargs: Any
    ) -> str:
        file_path = resolve_tool_path(path, ctx.config.workspace_path)
        content = await run_file_op(_read, file_path, path, timeout=self._timeout(timeout))
        if len(content) > MAX_READ_CHARS:
            content = content[:MAX_READ_CHARS] + f"\n... (truncated, {len(content) - MAX_READ_CHARS} more chars)"
        return content


class WriteFileTool(_FileTool):
    """Tool to write content to a file."""

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file at the given path. Creates parent directories if needed."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to write to"},
                "content": {"type": "string", "description": "The content to write"},
                "timeout": TIMEOUT_PARAM,
            },
            "required": ["path", "content"],
        }

    async def execute(
        self, ctx: ToolContext, path: str, content: str, timeout: float | None = None, **kwargs: Any
    ) -> str:
        file_path = resolve_tool_path(path, ctx.config.workspace_path)
        guard_path("write", file_path, ctx.config)
        await run_file_op(_write, file_path, content, path, timeout=self._timeout(timeout))
        audit.log_file_access("write", str(file_path), bytes_accessed=len(content))
        return f"Successfully wrote {len(content)} bytes to {path}"


class ListDirTool(_FileTool):
    """Tool to list directory contents."""

    @property
    def name(self) -> str:
        return "list_dir"

    @property
    def description(self) -> str:
        return "List the contents of a directory."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The directory path to list"},
                "timeout": TIMEOUT_PARAM,
            },
            "required": ["path"],
        }

    async def execute(
        self, ctx: ToolContext, path: str, timeout: float | None = None, **kwargs: Any
    ) -> str:
        dir_path = resolve_tool_path(path, ctx.config.workspace_path)
        items = await run_file_op(_list, dir_path, path, timeout=self._timeout(timeout))
        if not items:
            return f"Directory {path} is empty"
        return "\n".join(items)


class DeleteFileTool(_FileTool):
    """Tool to delete a single file."""

    @property
    def name(self) -> str:
        return "delete_file"

    @property
    def description(self) -> str:
        return "Delete a file at the given path. Directories are not removed."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to delete"},
                "timeout": TIMEOUT_PARAM,
            },
            "required": ["path"],
        }

    async def execute(
        self, ctx: ToolContext, path: str, timeout: float | None = None, **kwargs: Any
    ) -> str:
        file_path = resolve_tool_path(path, ctx.config.workspace_path)
        guard_path("delete", file_path, ctx.config)
        await run_file_op(_delete, file_path, path, timeout=self._timeout(timeout))
        audit.log_file_access("delete", str(file_path))
        return f"Deleted: {path}"
