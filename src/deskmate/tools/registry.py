"""Tool registry and dispatcher.

The registry maps tool names to Tool instances and produces the schema list
offered to the completion service. The dispatcher executes one ToolCall:

    PARSE_ARGS → RESOLVE_BASE_PATH → EXECUTE → SUCCESS | TOOL_ERROR

Every failure becomes tool-result text for the model; nothing raised by a tool
escapes dispatch().
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from deskmate.config import ToolsCfg
from deskmate.messages import ToolCall
from deskmate.tools.base import Tool, ToolContext, ToolExecutionResult
from deskmate.tools.handlers import (
    CreateDirectoryTool,
    CreateFileTool,
    EditFileTool,
    ListDirectoryRecursiveTool,
    ListDirectoryTool,
    ReadFileTool,
)
from deskmate.tools.notes import AppendToAIContextTool, SaveMemoryTool
from deskmate.tools.sandbox import SandboxViolation

if TYPE_CHECKING:
    from deskmate.db.models import Project
    from deskmate.rag.insights import InsightStore

logger = logging.getLogger(__name__)

HOME_DESCRIPTION = "relative to the user's home directory"


class ToolRegistry:
    """Name → Tool mapping, in registration order."""

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if not tool.name:
            raise ValueError(f"{type(tool).__name__} has no name")
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        """Return the OpenAI-style tool definitions for every registered tool."""
        return [t.schema() for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def default_registry() -> ToolRegistry:
    """Return a registry with the built-in tool set."""
    return ToolRegistry(
        [
            ListDirectoryTool(),
            ListDirectoryRecursiveTool(),
            ReadFileTool(),
            SaveMemoryTool(),
            CreateDirectoryTool(),
            CreateFileTool(),
            EditFileTool(),
            AppendToAIContextTool(),
        ]
    )


# ------------------------------------------------------------------
# Argument validation
# ------------------------------------------------------------------


def _type_ok(expected: str | None, value: Any) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected in ("integer", "number"):
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return True
        # Numeric strings are coerced by the tool
        return isinstance(value, str) and value.strip().lstrip("-").isdigit()
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "object":
        return isinstance(value, dict)
    if expected == "array":
        return isinstance(value, list)
    return True


def validate_args(tool: Tool, args: dict[str, Any]) -> str | None:
    """Check *args* against the tool's parameter schema.

    Returns:
        A description of the first problem found, or None if the arguments are valid.
    """
    properties = tool.parameters.get("properties", {})
    for key in tool.parameters.get("required", []):
        if args.get(key) is None:
            return f"missing required argument '{key}'"
    for key, value in args.items():
        prop = properties.get(key)
        if prop is None or value is None:
            continue
        if not _type_ok(prop.get("type"), value):
            return f"argument '{key}' must be of type {prop.get('type')}"
    return None


# ------------------------------------------------------------------
# Error text
# ------------------------------------------------------------------


def access_denied_message(description: str) -> str:
    return (
        f"Error: Access denied or invalid path. Paths must be {description} "
        f"and cannot contain '..'."
    )


def describe_os_error(exc: OSError, tool_name: str, requested: str) -> str:
    """Map a filesystem error to tool-result text. Unknown errors carry no OS detail."""
    if isinstance(exc, FileNotFoundError):
        return f'Error: Path not found "{requested}".'
    if isinstance(exc, PermissionError):
        return f'Error: Permission denied for path "{requested}".'
    if isinstance(exc, FileExistsError):
        return f'Error: A file or directory already exists at path "{requested}".'
    if isinstance(exc, NotADirectoryError):
        return f'Error: Path "{requested}" is not a directory.'
    if isinstance(exc, IsADirectoryError):
        return f'Error: Path "{requested}" is a directory, not a file.'
    return f"Error: Failed to execute {tool_name} due to a filesystem error."


# ------------------------------------------------------------------
# Dispatcher
# ------------------------------------------------------------------


class ToolDispatcher:
    """Executes tool calls against a registry with sandboxed base paths.

    Args:
        registry: Tools available to the model.
        home_dir: Base path for read-only tools when no project is active.
        insights: Long-term memory store handed to ``save_memory``.
        settings: Size and depth limits handed to every tool.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        home_dir: Path,
        insights: InsightStore | None = None,
        settings: ToolsCfg | None = None,
    ) -> None:
        self.registry = registry
        self.home_dir = Path(home_dir)
        self.insights = insights
        self.settings = settings or ToolsCfg()

    def dispatch(self, call: ToolCall, project: Project | None) -> ToolExecutionResult:
        """Execute one tool call and return its result text. Never raises."""
        name = call.name

        # PARSE_ARGS
        try:
            args = json.loads(call.arguments) if call.arguments.strip() else {}
        except (TypeError, ValueError):
            logger.warning("Malformed arguments for tool %s: %r", name, call.arguments[:200])
            return ToolExecutionResult(f"Error: Invalid arguments for tool {name}.")
        if not isinstance(args, dict):
            return ToolExecutionResult(f"Error: Invalid arguments for tool {name}.")

        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", name)
            return ToolExecutionResult(f'Error: Tool "{name}" not found.')

        problem = validate_args(tool, args)
        if problem is not None:
            logger.warning("Invalid arguments for tool %s: %s", name, problem)
            return ToolExecutionResult(f"Error: Invalid arguments for tool {name}: {problem}.")

        # RESOLVE_BASE_PATH
        if project is not None:
            ctx = ToolContext(
                base_path=project.root,
                description=f"relative to the active project root ({project.name})",
                project=project,
                insights=self.insights,
                settings=self.settings,
            )
        elif tool.requires_project:
            return ToolExecutionResult(
                f"Error: Tool {name} requires an active project context. Select a project first."
            )
        else:
            ctx = ToolContext(
                base_path=self.home_dir if tool.uses_filesystem else None,
                description=HOME_DESCRIPTION,
                insights=self.insights,
                settings=self.settings,
            )

        # EXECUTE
        logger.debug("Dispatching %s (%s)", name, ctx.description)
        requested = str(args.get("path", "")) or name
        try:
            result = tool.execute(args, ctx)
        except SandboxViolation as exc:
            logger.warning("Sandbox violation in %s: %s", name, exc)
            return ToolExecutionResult(access_denied_message(ctx.description))
        except OSError as exc:
            logger.warning("%s failed for %r: %s", name, requested, exc)
            return ToolExecutionResult(describe_os_error(exc, name, requested))
        except Exception:
            logger.exception("Unexpected error in tool %s", name)
            return ToolExecutionResult(f"Error: Tool {name} failed unexpectedly.")

        logger.debug("Result for %s: %.100s", name, result.result)
        return result
