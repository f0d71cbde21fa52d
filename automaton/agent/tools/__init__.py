"""Agent tools module."""

from automaton.agent.tools.base import Tool, ToolContext
from automaton.agent.tools.registry import POLICY_BLOCK_PREFIX, ToolRegistry
from automaton.agent.tools.shell import ExecTool
from automaton.agent.tools.filesystem import DeleteFileTool, ListDirTool, ReadFileTool, WriteFileTool
from automaton.agent.tools.survival import CheckCreditsTool, SleepTool, SystemSynopsisTool
from automaton.agent.tools.self_mod import EditOwnFileTool, InstallPackageTool, ModifyHeartbeatTool
from automaton.config.schema import Config


def create_builtin_tools(config: Config) -> list[Tool]:
    """Instantiate every built-in tool with its configured limits."""
    file_timeout = config.exec.file_timeout
    return [
        ExecTool(timeout=config.exec.timeout, max_output_chars=config.exec.max_output_chars),
        ReadFileTool(timeout=file_timeout),
        WriteFileTool(timeout=file_timeout),
        ListDirTool(timeout=file_timeout),
        DeleteFileTool(timeout=file_timeout),
        SleepTool(),
        SystemSynopsisTool(),
        CheckCreditsTool(),
        EditOwnFileTool(timeout=file_timeout),
        InstallPackageTool(timeout=config.exec.install_timeout),
        ModifyHeartbeatTool(),
    ]


def create_registry(config: Config) -> ToolRegistry:
    registry = ToolRegistry()
    for tool in create_builtin_tools(config):
        registry.register(tool)
    return registry


__all__ = [
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "POLICY_BLOCK_PREFIX",
    "ExecTool",
    "ReadFileTool",
    "WriteFileTool",
    "ListDirTool",
    "DeleteFileTool",
    "SleepTool",
    "SystemSynopsisTool",
    "CheckCreditsTool",
    "EditOwnFileTool",
    "InstallPackageTool",
    "ModifyHeartbeatTool",
    "create_builtin_tools",
    "create_registry",
]
